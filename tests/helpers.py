"""Fakes and payload builders shared by the test modules."""

import json
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from requests.structures import CaseInsensitiveDict

from library_mirror.clients.errors import RequestError
from library_mirror.clients.vimeo import VimeoClient

PLAYER_HOST = "player.panda.test"
IMPORT_URL = "https://import.panda.test/videos"


def make_response(status: int = 200, body=None, headers: dict | None = None, raw: bytes | None = None):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers or {})
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(body).encode() if body is not None else b""
    return response


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.headers = {}
        self.calls = []
        self.closed = False

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "params": params, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


def strip_page_size(url: str) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "per_page"]
    return urlunsplit(parts._replace(query=urlencode(query, safe=",")))


class FakeVimeoHttp:
    """
    Route table for Vimeo listings, keyed by URL without per_page.

    A route value is either a page payload or an exception to raise.
    """

    def __init__(self, routes: dict):
        self.routes = routes
        self.requested = []
        self.closed = False

    def get(self, url, params=None):
        key = strip_page_size(url)
        self.requested.append(key)
        if key not in self.routes:
            raise RequestError("API error 404: not found", status=404, url=url)
        value = self.routes[key]
        if isinstance(value, Exception):
            raise value
        return value

    def build_url(self, url):
        return url

    def close(self):
        self.closed = True


class FakePandaHttp:
    """In-memory emulation of the Panda folder and video endpoints."""

    def __init__(self, folders=None, videos=None):
        self.folders = list(folders or [])
        self.videos = list(videos or [])
        self.calls = []
        self.fail_folder_names = set()
        self.fail_titles = set()
        self.import_response = {"id": "imported-1", "websocket_url": "wss://panda.test/imported-1"}
        self._next_id = 1
        self.closed = False

    def build_url(self, url):
        return url if url.startswith("http") else f"https://api.panda.test{url}"

    def get(self, url, params=None):
        self.calls.append(("GET", url, dict(params or {})))
        if url == "/folders":
            return {"folders": [dict(f) for f in self.folders]}
        if url == "/videos":
            params = params or {}
            if params.get("title") in self.fail_titles:
                raise RequestError("API error 500: boom", status=500, url=self.build_url(url))
            hits = [
                dict(v) for v in self.videos
                if v.get("title") == params.get("title")
                and ("folder_id" not in params or v.get("folder_id") == params["folder_id"])
            ]
            return {"videos": hits}
        raise RequestError("API error 404: not found", status=404, url=self.build_url(url))

    def post(self, url, payload=None):
        self.calls.append(("POST", url, dict(payload or {})))
        if url == "/folders":
            if payload["name"] in self.fail_folder_names:
                raise RequestError("API error 500: boom", status=500, url=self.build_url(url))
            folder_id = f"new-{self._next_id}"
            self._next_id += 1
            self.folders.append({
                "id": folder_id,
                "name": payload["name"],
                "parent_folder_id": payload.get("parent_folder_id"),
            })
            return {"id": folder_id}
        if url == IMPORT_URL:
            return dict(self.import_response)
        raise RequestError("API error 404: not found", status=404, url=self.build_url(url))

    def count(self, method, url):
        return sum(1 for call in self.calls if call[0] == method and call[1] == url)

    def close(self):
        self.closed = True


def folder_entry(uri, name, videos_uri=None, items_uri=None):
    connections = {}
    if videos_uri:
        connections["videos"] = {"uri": videos_uri}
    if items_uri:
        connections["items"] = {"uri": items_uri}
    return {"type": "folder", "folder": {"uri": uri, "name": name, "metadata": {"connections": connections}}}


def video_entry(video_id, name, downloads=None):
    return {"uri": f"/videos/{video_id}", "name": name, "download": downloads or []}


def page(data, next_url=None):
    return {"data": data, "paging": {"next": next_url}}


def make_vimeo(routes: dict) -> VimeoClient:
    return VimeoClient(http=FakeVimeoHttp(routes), page_size=50, player_domain="vimeo.com")
