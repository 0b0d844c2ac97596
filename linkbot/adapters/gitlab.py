"""GitLab REST v4 adapter (merge request source)."""

from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, TypeVar
from urllib.parse import quote

import requests

from linkbot.adapters.base import MergeRequestSource
from linkbot.errors import SourceError
from linkbot.models import MergeRequest, Note

PER_PAGE = 100

T = TypeVar("T")


def _parse_iso(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _merge_request_from_api(data: Dict[str, Any]) -> MergeRequest:
    author = data.get("author") or {}
    return MergeRequest(
        iid=data["iid"],
        title=data.get("title") or "",
        description=data.get("description") or "",
        web_url=data.get("web_url") or "",
        author=author.get("username", ""),
        source_branch=data.get("source_branch") or "",
    )


def _note_from_api(data: Dict[str, Any]) -> Note:
    author = data.get("author") or {}
    return Note(
        id=data["id"],
        body=data.get("body") or "",
        author=author.get("username", ""),
        created_at=_parse_iso(data["created_at"]),
        system=bool(data.get("system", False)),
    )


def _map(mapper: Callable[[Dict[str, Any]], T], data: Any, what: str) -> T:
    """Apply an API mapper, turning malformed payloads into SourceError."""
    try:
        return mapper(data)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise SourceError(f"Malformed {what} in response: {e!r}") from e


class GitLabAdapter(MergeRequestSource):
    """GitLab API implementation bound to one project."""

    def __init__(
        self,
        token: str,
        project_id: str,
        url: str = "https://gitlab.com",
        timeout: int = 30,
    ) -> None:
        self._api_url = f"{url.rstrip('/')}/api/v4"
        # group/project paths must be URL-encoded as a single segment
        self._project = quote(str(project_id), safe="")
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["PRIVATE-TOKEN"] = token
        self._session.headers["Accept"] = "application/json"

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self._api_url}/projects/{self._project}{path}"
        try:
            resp = self._session.request(method, url, params=params, json=json, timeout=self._timeout)
        except requests.RequestException as e:
            raise SourceError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                body = resp.json()
                msg = body.get("message") or body.get("error") or msg
            except Exception:
                pass
            raise SourceError(f"{resp.status_code}: {msg}")
        return resp

    def _json(self, resp: requests.Response, path: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise SourceError(f"{path}: response is not JSON: {e}") from e

    def _paginate(self, path: str, params: Dict[str, Any] | None = None) -> Iterator[Dict[str, Any]]:
        """Yield items from all pages, following the X-Next-Page header."""
        page_params = {**(params or {}), "per_page": PER_PAGE, "page": 1}
        while True:
            resp = self._request("GET", path, params=page_params)
            items = self._json(resp, path) or []
            if not isinstance(items, list):
                raise SourceError(f"{path}: expected a list, got {type(items).__name__}")
            yield from items
            next_page = (resp.headers.get("X-Next-Page") or "").strip()
            if not next_page:
                return
            try:
                page_params = {**page_params, "page": int(next_page)}
            except ValueError as e:
                raise SourceError(f"{path}: bad X-Next-Page {next_page!r}") from e

    def list_open_merge_requests(self, author: str) -> List[MergeRequest]:
        params: Dict[str, Any] = {"state": "opened", "author_username": author}
        merge_requests = [_map(_merge_request_from_api, d, "merge request") for d in self._paginate("/merge_requests", params)]
        # Server-side filtering is not trusted alone; an empty author matches nothing
        return [mr for mr in merge_requests if mr.author == author]

    def list_notes(self, mr_iid: int) -> List[Note]:
        path = f"/merge_requests/{mr_iid}/notes"
        params = {"sort": "asc", "order_by": "created_at"}
        return [_map(_note_from_api, d, "note") for d in self._paginate(path, params)]

    def post_comment(self, mr_iid: int, body: str) -> Note:
        path = f"/merge_requests/{mr_iid}/notes"
        resp = self._request("POST", path, json={"body": body})
        return _map(_note_from_api, self._json(resp, path), "note")
