"""Build tree requests from resolved path operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from .errors import InvalidPath
from .objects import ObjectId, PathOperation, TreeEntry, check_repo_path


@dataclass(frozen=True)
class TreeRequest:
    """Payload for creating a tree on top of ``base_tree_id``."""

    base_tree_id: ObjectId
    entries: List[TreeEntry]

    @property
    def deleted_paths(self) -> List[str]:
        return [entry.path for entry in self.entries if entry.object_id is None]

    @property
    def written_paths(self) -> List[str]:
        return [entry.path for entry in self.entries if entry.object_id is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_tree": self.base_tree_id,
            "tree": [entry.to_dict() for entry in self.entries],
        }


def compose_tree(
    base_tree_id: ObjectId,
    operations: Sequence[PathOperation],
    blob_ids: Mapping[str, ObjectId],
    known_paths: Optional[Collection[str]] = None,
) -> TreeRequest:
    """Map each operation onto a tree entry.

    Writes reference the blob already uploaded for their path; deletes carry a
    null object id. ``known_paths`` is the set of files in the base tree; when
    given, a delete for any other path is rejected.
    """

    entries: List[TreeEntry] = []
    seen = set()
    known = set(known_paths) if known_paths is not None else None

    for op in operations:
        path = check_repo_path(op.path)
        if path in seen:
            raise InvalidPath(path, "appears more than once in the tree request")
        seen.add(path)

        if op.is_write:
            blob_id = blob_ids.get(path)
            if not blob_id:
                raise InvalidPath(path, "no uploaded blob for this write")
            entries.append(TreeEntry(path=path, object_id=blob_id))
        else:
            if known is not None and path not in known:
                raise InvalidPath(path, "cannot delete a path missing from the base tree")
            entries.append(TreeEntry(path=path, object_id=None))

    entries.sort(key=lambda entry: entry.path)
    return TreeRequest(base_tree_id=base_tree_id, entries=entries)


__all__ = ["TreeRequest", "compose_tree"]
