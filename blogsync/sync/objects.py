"""Value types shared by the synchronization engine."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import InvalidPath

ObjectId = str

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")
FILE_MODE = "100644"
BLOB_TYPE = "blob"
ENCODINGS = ("utf-8", "base64")


def is_object_id(value: Any) -> bool:
    """Return True if ``value`` looks like a 40-hex content hash."""
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def check_repo_path(path: str) -> str:
    """Reject paths that are absolute, empty, or climb out of the repository."""
    if not path:
        raise InvalidPath(path, "path is empty")
    if path.startswith("/"):
        raise InvalidPath(path, "path must be relative to the repository root")
    if "\\" in path:
        raise InvalidPath(path, "use forward slashes")
    for segment in path.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidPath(path, "empty, '.' or '..' segment")
    return path


class OperationKind(str, Enum):
    """What a path operation does to the tree."""
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True)
class PathOperation:
    """A single file-level change: write content at a path, or remove it."""

    path: str
    kind: OperationKind
    content: Optional[bytes] = None
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if self.kind is OperationKind.WRITE and self.content is None:
            raise ValueError(f"Write operation for '{self.path}' needs content")
        if self.kind is OperationKind.DELETE and self.content is not None:
            raise ValueError(f"Delete operation for '{self.path}' cannot carry content")
        if self.encoding not in ENCODINGS:
            raise ValueError(f"Unsupported encoding '{self.encoding}'")

    @classmethod
    def write(cls, path: str, content: bytes, encoding: str = "utf-8") -> "PathOperation":
        return cls(path=path, kind=OperationKind.WRITE, content=content, encoding=encoding)

    @classmethod
    def delete(cls, path: str) -> "PathOperation":
        return cls(path=path, kind=OperationKind.DELETE)

    @property
    def is_write(self) -> bool:
        return self.kind is OperationKind.WRITE

    def payload(self) -> str:
        """Content as the string the blob endpoint expects for this encoding."""
        if self.content is None:
            raise ValueError(f"Delete operation for '{self.path}' has no content")
        if self.encoding == "base64":
            return base64.b64encode(self.content).decode("ascii")
        return self.content.decode("utf-8")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "encoding": self.encoding,
            "size": len(self.content) if self.content is not None else None,
        }


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a tree request. ``object_id=None`` removes the path."""

    path: str
    object_id: Optional[ObjectId]
    mode: str = FILE_MODE
    type: str = BLOB_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
            "sha": self.object_id,
        }


@dataclass(frozen=True)
class TreeItem:
    """A blob found while listing an existing tree."""

    path: str
    object_id: ObjectId
    size: Optional[int] = None
    mode: str = FILE_MODE


@dataclass(frozen=True)
class BranchHead:
    """Commit and tree a branch pointed at when a transaction started."""

    branch: str
    commit_id: ObjectId
    tree_id: ObjectId


@dataclass(frozen=True)
class CommitSummary:
    """Short description of a commit, as returned by history listings."""

    commit_id: ObjectId
    message: str
    author: str = ""
    date: str = ""
    url: str = ""

    @property
    def short_id(self) -> str:
        return self.commit_id[:7]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.commit_id,
            "short": self.short_id,
            "message": self.message,
            "author": self.author,
            "date": self.date,
            "url": self.url,
        }


@dataclass(frozen=True)
class Transaction:
    """An ordered, duplicate-free set of path operations applied as one commit."""

    message: str
    operations: Tuple[PathOperation, ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, message: str, operations: Sequence[PathOperation]) -> "Transaction":
        seen = set()
        for op in operations:
            check_repo_path(op.path)
            if op.path in seen:
                raise InvalidPath(op.path, "appears more than once in the transaction")
            seen.add(op.path)
        return cls(message=message, operations=tuple(operations))

    @property
    def writes(self) -> List[PathOperation]:
        return [op for op in self.operations if op.is_write]

    @property
    def deletes(self) -> List[PathOperation]:
        return [op for op in self.operations if not op.is_write]

    @property
    def paths(self) -> List[str]:
        return [op.path for op in self.operations]

    def __len__(self) -> int:
        return len(self.operations)


__all__ = [
    "ObjectId",
    "OperationKind",
    "PathOperation",
    "TreeEntry",
    "TreeItem",
    "BranchHead",
    "CommitSummary",
    "Transaction",
    "FILE_MODE",
    "BLOB_TYPE",
    "is_object_id",
    "check_repo_path",
]
