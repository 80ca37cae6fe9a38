#!/usr/bin/env python3
"""
Mirror CLI: recreate the Vimeo folder tree on Panda Video and record
which Panda video corresponds to each Vimeo video.

Usage:
    python scripts/mirror_library.py                      # Full mirror
    python scripts/mirror_library.py --no-create-folders  # Only use existing Panda folders
    python scripts/mirror_library.py --upload-missing     # Import videos Panda doesn't have
    python scripts/mirror_library.py --backfill           # Re-search rows without a Panda id
    python scripts/mirror_library.py --status             # Show mapping stats
    python scripts/mirror_library.py --config             # Show configuration
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from library_mirror.config import get_settings
from library_mirror.clients import PandaClient, VimeoClient
from library_mirror.sync import (
    FolderResolver,
    HierarchyWalker,
    VideoMatcher,
    backfill_unmatched,
    get_mapping_store,
)

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _mask(secret: str) -> str:
    return "***" + secret[-4:] if secret else "Not set"


def show_status() -> int:
    """Display mapping store statistics."""
    print("\n=== Mapping Status ===\n")

    try:
        stats = get_mapping_store().get_stats()
    except Exception as e:
        print(f"Error getting status: {e}")
        return 1

    print(f"Total mapped videos: {stats.get('total', 0)}")
    print(f"  With Panda id:    {stats.get('matched', 0)}")
    print(f"  Pending:          {stats.get('unmatched', 0)}")
    return 0


def show_config() -> None:
    """Display current mirror configuration."""
    settings = get_settings()

    print("\n=== Mirror Configuration ===\n")
    print("Vimeo:")
    print(f"  API base: {settings.vimeo_url_base}")
    print(f"  User ID: {settings.vimeo_user_id or 'Not set'}")
    print(f"  Access token: {_mask(settings.vimeo_access_token)}")
    print("\nPanda:")
    print(f"  API base: {settings.panda_api_base}")
    print(f"  API token: {_mask(settings.panda_api_token)}")
    print("\nPolicy:")
    print(f"  Create missing folders: {settings.create_missing_folders}")
    print(f"  Import missing videos: {settings.upload_missing_videos}")
    print(f"  Delays: {settings.video_delay_ms}ms per video, {settings.folder_delay_ms}ms per folder")
    print("\nStore:")
    print(f"  Backend: {settings.store_backend}")
    if settings.store_backend == "sqlite":
        print(f"  Path: {settings.mapping_db_path}")
    else:
        print(f"  URL: {settings.supabase_url or 'Not set'}")
        print(f"  Key: {_mask(settings.supabase_key)}")


def run_mirror(create_folders: bool, upload_missing: bool) -> int:
    """Run the full mirror. Returns the process exit code."""
    settings = get_settings()

    print("\n" + "=" * 60)
    print("Vimeo -> Panda Mirror")
    print("=" * 60)
    print(f"Folders: {'find or create' if create_folders else 'existing only'}")
    print(f"Unmatched videos: {'import' if upload_missing else 'report'}")
    print()

    if not settings.vimeo_user_id:
        print("Configuration error: VIMEO_USER_ID is not set")
        return 1

    vimeo = panda = None
    try:
        vimeo = VimeoClient()
        panda = PandaClient()
        store = get_mapping_store()

        walker = HierarchyWalker(
            source=vimeo,
            resolver=FolderResolver(panda, create_missing=create_folders),
            matcher=VideoMatcher(panda, store, upload_missing=upload_missing),
        )
        stats = walker.run()

    except ValueError as e:
        print(f"\nConfiguration error: {e}")
        print("\nMake sure required environment variables are set:")
        print("  - VIMEO_ACCESS_TOKEN and VIMEO_USER_ID")
        print("  - PANDA_API_TOKEN")
        print("  - SUPABASE_URL and SUPABASE_KEY (when STORE_BACKEND=supabase)")
        return 1

    except Exception as e:
        print(f"\nMirror failed: {e}")
        logger.exception("Mirror error")
        return 1

    finally:
        for client in (vimeo, panda):
            if client is not None:
                client.close()

    print("\n" + "=" * 60)
    print("MIRROR COMPLETE")
    print("=" * 60)
    print(stats)

    if stats.skipped:
        print("\nSkipped:")
        for item in stats.skipped[:20]:
            print(f"  - {item.kind} \"{item.name}\": {item.reason}")
        if len(stats.skipped) > 20:
            print(f"  ... and {len(stats.skipped) - 20} more")

    return 0


def run_backfill() -> int:
    """Re-search Panda for rows that have no target id yet."""
    panda = None
    try:
        panda = PandaClient()
        stats = backfill_unmatched(get_mapping_store(), panda)
    except ValueError as e:
        print(f"\nConfiguration error: {e}")
        return 1
    except Exception as e:
        print(f"\nBackfill failed: {e}")
        logger.exception("Backfill error")
        return 1
    finally:
        if panda is not None:
            panda.close()

    print("\n=== Backfill Complete ===\n")
    print(stats)
    for error in stats.errors[:10]:
        print(f"  - {error}")
    return 0


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Mirror a Vimeo folder tree onto Panda Video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/mirror_library.py                      # Full mirror
  python scripts/mirror_library.py --no-create-folders  # Read-only folder mirror
  python scripts/mirror_library.py --upload-missing     # Import unmatched videos
  python scripts/mirror_library.py --backfill           # Fill in pending Panda ids
  python scripts/mirror_library.py --status             # Show current status
        """,
    )

    parser.add_argument(
        "--no-create-folders",
        action="store_true",
        help="Skip Vimeo folders that have no Panda folder instead of creating them",
    )
    parser.add_argument(
        "--upload-missing",
        action="store_true",
        help="Import videos that have no Panda match (uses the Vimeo download link)",
    )
    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Only re-search Panda for mapped rows without a Panda id",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show mapping statistics and exit",
    )
    parser.add_argument(
        "--config",
        action="store_true",
        help="Show current configuration and exit",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.status:
        sys.exit(show_status())

    if args.config:
        show_config()
        return

    if args.backfill:
        sys.exit(run_backfill())

    sys.exit(run_mirror(
        create_folders=settings.create_missing_folders and not args.no_create_folders,
        upload_missing=settings.upload_missing_videos or args.upload_missing,
    ))


if __name__ == "__main__":
    main()
