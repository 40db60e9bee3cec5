"""Shared fixtures: an in-memory content-addressed object store."""

from __future__ import annotations

import base64
import hashlib
import threading
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pytest

from blogsync.sync import (
    CommitSummary,
    Conflict,
    NotFound,
    RemoteRejected,
    SyncError,
    TreeEntry,
    TreeItem,
    Unauthorized,
)

TOKEN = "test-token"


def blob_id_for(content: bytes) -> str:
    """Git's object id for a blob with ``content``."""
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content).hexdigest()


class FakeObjectStore:
    """Object store with the same contract as ``GitHubObjectStore``.

    Blobs are addressed by their git SHA-1, trees are flat ``path -> blob id``
    maps, and ``advance_ref`` only moves a branch that still points at the
    expected commit. ``fail()`` makes a method raise after a number of calls.
    """

    def __init__(self, token: str = TOKEN):
        self.token = token
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Dict[str, str]] = {}
        self.commits: Dict[str, Tuple[str, Tuple[str, ...], str]] = {}
        self.refs: Dict[str, str] = {}
        self.calls: List[str] = []
        self.before_advance: Optional[Callable[[str], None]] = None
        self._failures: Dict[str, Tuple[SyncError, int]] = {}
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    # -- test helpers ---------------------------------------------------------

    def seed(self, files: Mapping[str, Union[str, bytes]], branch: str = "main", message: str = "init") -> str:
        """Create a commit holding ``files`` (on top of the branch, if any) and point the branch at it."""
        parent = self.refs.get(branch)
        tree = dict(self.trees[self.commits[parent][0]]) if parent else {}
        for path, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            blob = blob_id_for(data)
            self.blobs[blob] = data
            tree[path] = blob
        tree_id = self._store_tree(tree)
        commit_id = self._store_commit(tree_id, (parent,) if parent else (), message)
        self.refs[branch] = commit_id
        return commit_id

    def fail(self, method: str, error: SyncError, after: int = 0) -> None:
        """Make ``method`` raise ``error`` once it has been called ``after`` times."""
        self._failures[method] = (error, after)

    def files(self, branch: str = "main") -> Dict[str, bytes]:
        tree = self.trees[self.commits[self.refs[branch]][0]]
        return {path: self.blobs[blob] for path, blob in tree.items()}

    def count(self, method: str) -> int:
        return self.calls.count(method)

    # -- store contract -------------------------------------------------------

    def create_blob(self, token: str, content: str, encoding: str = "utf-8") -> str:
        self._enter("create_blob", token)
        data = base64.b64decode(content) if encoding == "base64" else content.encode("utf-8")
        blob = blob_id_for(data)
        with self._lock:
            self.blobs[blob] = data
        return blob

    def create_tree(self, token: str, entries: Sequence[TreeEntry], base_tree_id: Optional[str]) -> str:
        self._enter("create_tree", token)
        tree = dict(self.trees[base_tree_id]) if base_tree_id else {}
        for entry in entries:
            if entry.object_id is None:
                if entry.path not in tree:
                    raise RemoteRejected(f"tree.path '{entry.path}' does not exist", status=422)
                del tree[entry.path]
            else:
                if entry.object_id not in self.blobs:
                    raise RemoteRejected(f"tree.sha {entry.object_id} is not a valid blob", status=422)
                tree[entry.path] = entry.object_id
        return self._store_tree(tree)

    def create_commit(self, token: str, message: str, tree_id: str, parent_ids: Sequence[str]) -> str:
        self._enter("create_commit", token)
        if tree_id not in self.trees:
            raise RemoteRejected(f"tree {tree_id} not found", status=422)
        return self._store_commit(tree_id, tuple(parent_ids), message)

    def advance_ref(self, token: str, branch: str, from_commit_id: str, to_commit_id: str) -> None:
        self._enter("advance_ref", token)
        if self.before_advance is not None:
            hook, self.before_advance = self.before_advance, None
            hook(branch)
        current = self.refs.get(branch)
        if current is None:
            raise NotFound(f"branch {branch} not found")
        if current != from_commit_id:
            raise Conflict(branch, from_commit_id, current)
        self.refs[branch] = to_commit_id

    def read_ref(self, token: str, branch: str) -> str:
        self._enter("read_ref", token)
        if branch not in self.refs:
            raise NotFound(f"branch {branch} not found")
        return self.refs[branch]

    def read_commit_tree(self, token: str, commit_id: str) -> str:
        self._enter("read_commit_tree", token)
        if commit_id not in self.commits:
            raise NotFound(f"commit {commit_id} not found")
        return self.commits[commit_id][0]

    def list_tree(self, token: str, tree_id: str) -> List[TreeItem]:
        self._enter("list_tree", token)
        tree = self.trees[tree_id]
        return [
            TreeItem(path=path, object_id=blob, size=len(self.blobs[blob]))
            for path, blob in sorted(tree.items())
        ]

    def read_blob(self, token: str, blob_id: str) -> bytes:
        self._enter("read_blob", token)
        if blob_id not in self.blobs:
            raise NotFound(f"blob {blob_id} not found")
        return self.blobs[blob_id]

    def list_commits(
        self,
        token: str,
        branch: str,
        path: Optional[str] = None,
        limit: int = 30,
    ) -> List[CommitSummary]:
        self._enter("list_commits", token)
        summaries: List[CommitSummary] = []
        commit_id: Optional[str] = self.refs[branch]
        while commit_id and len(summaries) < limit:
            tree_id, parents, message = self.commits[commit_id]
            parent = parents[0] if parents else None
            if path is None or self._touches(path, tree_id, parent):
                summaries.append(CommitSummary(commit_id=commit_id, message=message, author="tester"))
            commit_id = parent
        return summaries

    # -- internals ------------------------------------------------------------

    def _enter(self, method: str, token: str) -> None:
        with self._lock:
            self.calls.append(method)
            count = self._counts.get(method, 0) + 1
            self._counts[method] = count
        if token != self.token:
            raise Unauthorized("Bad credentials")
        failure = self._failures.get(method)
        if failure is not None and count > failure[1]:
            raise failure[0]

    def _store_tree(self, tree: Dict[str, str]) -> str:
        digest = hashlib.sha1(repr(sorted(tree.items())).encode("utf-8")).hexdigest()
        with self._lock:
            self.trees[digest] = dict(tree)
        return digest

    def _store_commit(self, tree_id: str, parents: Tuple[str, ...], message: str) -> str:
        with self._lock:
            payload = f"{tree_id}|{','.join(parents)}|{message}|{len(self.commits)}"
            digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
            self.commits[digest] = (tree_id, parents, message)
        return digest

    def _touches(self, path: str, tree_id: str, parent: Optional[str]) -> bool:
        before = self.trees[self.commits[parent][0]] if parent else {}
        after = self.trees[tree_id]
        return before.get(path) != after.get(path)


@pytest.fixture
def token() -> str:
    return TOKEN


@pytest.fixture
def store() -> FakeObjectStore:
    fake = FakeObjectStore()
    fake.seed({"README.md": "# blog\n"})
    return fake
