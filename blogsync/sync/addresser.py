"""Primitive calls against the GitHub Git Data API.

Every method is a single round trip that either returns the requested object
id or content, or raises one of the typed failures in :mod:`.errors`. Nothing
here retries or holds state between calls; the credential is supplied per
call by the caller.
"""

from __future__ import annotations

import base64
import json
import logging
import socket
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from .errors import (
    Conflict,
    NotFound,
    RateLimited,
    RemoteRejected,
    RemoteUnavailable,
    SyncError,
    Unauthorized,
)
from .objects import CommitSummary, ObjectId, TreeEntry, TreeItem, is_object_id

logger = logging.getLogger("blogsync.sync.addresser")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
API_VERSION = "2022-11-28"


class GitHubObjectStore:
    """Content-addressed object store backed by one GitHub repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "blogsync",
    ):
        if not owner or not repo:
            raise ValueError("GitHub owner and repository name are required")
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent

    @property
    def repo_url(self) -> str:
        return f"{self.api_url}/repos/{quote(self.owner)}/{quote(self.repo)}"

    # -- writes -------------------------------------------------------------

    def create_blob(self, token: str, content: str, encoding: str = "utf-8") -> ObjectId:
        data = self._request(
            token, "POST", "git/blobs", body={"content": content, "encoding": encoding}
        )
        return _object_id(data, "sha")

    def create_tree(
        self,
        token: str,
        entries: Sequence[TreeEntry],
        base_tree_id: Optional[ObjectId],
    ) -> ObjectId:
        body: Dict[str, Any] = {"tree": [entry.to_dict() for entry in entries]}
        if base_tree_id:
            body["base_tree"] = base_tree_id
        data = self._request(token, "POST", "git/trees", body=body)
        return _object_id(data, "sha")

    def create_commit(
        self,
        token: str,
        message: str,
        tree_id: ObjectId,
        parent_ids: Sequence[ObjectId],
    ) -> ObjectId:
        data = self._request(
            token,
            "POST",
            "git/commits",
            body={"message": message, "tree": tree_id, "parents": list(parent_ids)},
        )
        return _object_id(data, "sha")

    def advance_ref(
        self,
        token: str,
        branch: str,
        from_commit_id: ObjectId,
        to_commit_id: ObjectId,
    ) -> None:
        """Move ``branch`` to ``to_commit_id`` only if it still points at ``from_commit_id``."""
        current = self.read_ref(token, branch)
        if current != from_commit_id:
            raise Conflict(branch, from_commit_id, current)

        try:
            self._request(
                token,
                "PATCH",
                f"git/refs/heads/{quote(branch)}",
                body={"sha": to_commit_id, "force": False},
            )
        except RemoteRejected as exc:
            # GitHub answers 422 "Update is not a fast forward" when the ref moved
            if exc.status in (409, 422):
                raise Conflict(branch, from_commit_id) from exc
            raise

    # -- reads --------------------------------------------------------------

    def read_ref(self, token: str, branch: str) -> ObjectId:
        data = self._request(token, "GET", f"git/ref/heads/{quote(branch)}")
        obj = data.get("object") if isinstance(data, dict) else None
        return _object_id(obj or {}, "sha")

    def read_commit_tree(self, token: str, commit_id: ObjectId) -> ObjectId:
        data = self._request(token, "GET", f"git/commits/{commit_id}")
        tree = data.get("tree") if isinstance(data, dict) else None
        return _object_id(tree or {}, "sha")

    def list_tree(self, token: str, tree_id: ObjectId) -> List[TreeItem]:
        """List every blob reachable from ``tree_id``."""
        data = self._request(token, "GET", f"git/trees/{tree_id}", query={"recursive": "1"})
        if data.get("truncated"):
            logger.warning("Recursive listing of %s was truncated; walking subtrees", tree_id)
            return self._walk_tree(token, tree_id, "")
        return [_tree_item(raw, "") for raw in data.get("tree", []) if raw.get("type") == "blob"]

    def read_blob(self, token: str, blob_id: ObjectId) -> bytes:
        data = self._request(token, "GET", f"git/blobs/{blob_id}")
        content = data.get("content", "")
        if data.get("encoding", "base64") == "base64":
            return base64.b64decode(content)
        return content.encode("utf-8")

    def list_commits(
        self,
        token: str,
        branch: str,
        path: Optional[str] = None,
        limit: int = 30,
    ) -> List[CommitSummary]:
        query = {"sha": branch, "per_page": str(max(1, min(limit, 100)))}
        if path:
            query["path"] = path
        data = self._request(token, "GET", "commits", query=query)
        commits: List[CommitSummary] = []
        for raw in data or []:
            commit = raw.get("commit") or {}
            author = commit.get("author") or {}
            commits.append(
                CommitSummary(
                    commit_id=_object_id(raw, "sha"),
                    message=commit.get("message", ""),
                    author=author.get("name", ""),
                    date=author.get("date", ""),
                    url=raw.get("html_url", ""),
                )
            )
        return commits

    # -- transport ----------------------------------------------------------

    def _walk_tree(self, token: str, tree_id: ObjectId, prefix: str) -> List[TreeItem]:
        data = self._request(token, "GET", f"git/trees/{tree_id}")
        items: List[TreeItem] = []
        for raw in data.get("tree", []):
            if raw.get("type") == "blob":
                items.append(_tree_item(raw, prefix))
            elif raw.get("type") == "tree":
                items.extend(self._walk_tree(token, raw["sha"], f"{prefix}{raw['path']}/"))
        return items

    def _request(
        self,
        token: str,
        method: str,
        endpoint: str,
        body: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, str]] = None,
    ) -> Any:
        url = f"{self.repo_url}/{endpoint}"
        if query:
            url = f"{url}?{urlencode(query)}"

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": self.user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        req = Request(url, data=data, headers=headers, method=method)
        logger.debug("%s %s", method, url)

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except HTTPError as exc:
            raise _map_http_error(exc, method, endpoint) from exc
        except (URLError, socket.timeout, TimeoutError, ConnectionError) as exc:
            reason = getattr(exc, "reason", exc)
            raise RemoteUnavailable(f"{method} {endpoint} failed: {reason}") from exc

        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RemoteUnavailable(f"{method} {endpoint} returned invalid JSON") from exc


def _map_http_error(exc: HTTPError, method: str, endpoint: str) -> SyncError:
    """Translate an HTTP error response into the engine's failure taxonomy."""

    status = exc.code
    headers = exc.headers or {}
    detail = _error_detail(exc)
    label = f"{method} {endpoint}: {status} {detail}".strip()

    if status == 429 or (status == 403 and _rate_limit_exhausted(headers, detail)):
        return RateLimited(label, retry_after=_retry_after(headers))
    if status in (401, 403):
        return Unauthorized(label)
    if status == 404:
        return NotFound(label)
    if status >= 500:
        return RemoteUnavailable(label)
    return RemoteRejected(label, status=status)


def _error_detail(exc: HTTPError) -> str:
    try:
        payload = json.loads(exc.read().decode("utf-8"))
    except (OSError, ValueError, AttributeError):
        return str(exc.reason or "")
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return str(exc.reason or "")


def _rate_limit_exhausted(headers: Mapping[str, str], detail: str) -> bool:
    if headers.get("X-RateLimit-Remaining") == "0":
        return True
    return "rate limit" in detail.lower()


def _retry_after(headers: Mapping[str, str]) -> Optional[float]:
    retry_after = headers.get("Retry-After")
    if retry_after:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            pass
    reset = headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


def _object_id(data: Mapping[str, Any], key: str) -> ObjectId:
    value = data.get(key) if isinstance(data, Mapping) else None
    if not is_object_id(value):
        raise RemoteUnavailable(f"Remote store returned no valid '{key}' object id")
    return value


def _tree_item(raw: Mapping[str, Any], prefix: str) -> TreeItem:
    return TreeItem(
        path=f"{prefix}{raw['path']}",
        object_id=raw["sha"],
        size=raw.get("size"),
        mode=raw.get("mode", "100644"),
    )


__all__ = ["GitHubObjectStore", "DEFAULT_API_URL", "DEFAULT_TIMEOUT"]
