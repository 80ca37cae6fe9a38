"""
HTTP clients for the source (Vimeo) and target (Panda Video) platforms.
"""

from library_mirror.clients.errors import (
    MirrorError,
    RequestError,
    RateLimitedError,
    TransientNetworkError,
    FormatError,
)
from library_mirror.clients.http import ResilientClient
from library_mirror.clients.pagination import iter_pages
from library_mirror.clients.vimeo import VimeoClient, VimeoFolder, VimeoVideo, format_vimeo_player_url
from library_mirror.clients.panda import PandaClient, PandaFolder, PandaVideo, format_panda_embed_url

__all__ = [
    "MirrorError",
    "RequestError",
    "RateLimitedError",
    "TransientNetworkError",
    "FormatError",
    "ResilientClient",
    "iter_pages",
    "VimeoClient",
    "VimeoFolder",
    "VimeoVideo",
    "format_vimeo_player_url",
    "PandaClient",
    "PandaFolder",
    "PandaVideo",
    "format_panda_embed_url",
]
