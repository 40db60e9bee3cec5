"""Read existing posts back from the repository for editing."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .frontmatter import parse_front_matter
from .objects import BranchHead, ObjectId, TreeItem
from .resolver import POST_FORMATS, ContentLayout, TreeSnapshot, validate_slug

logger = logging.getLogger("blogsync.sync.posts")


@dataclass
class Post:
    slug: str
    path: str
    file_format: str
    body: str
    front_matter: Dict[str, Any] = field(default_factory=dict)
    blob_id: Optional[ObjectId] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "path": self.path,
            "format": self.file_format,
            "front_matter": self.front_matter,
            "body": self.body,
            "blob": self.blob_id,
        }


def find_post_file(snapshot: TreeSnapshot, layout: ContentLayout, slug: str) -> Optional[TreeItem]:
    """Locate the file for ``slug``, preferring ``.md`` over ``.mdx``."""
    for file_format in POST_FORMATS:
        matches = snapshot.find_ignoring_case(layout.post_path(slug, file_format))
        if matches:
            return matches[0]
    return None


class PostReader:
    def __init__(self, store: Any, layout: Optional[ContentLayout] = None):
        self.store = store
        self.layout = layout or ContentLayout()

    def load(self, token: str, head: BranchHead, slug: str) -> Optional[Post]:
        validate_slug(slug)
        snapshot = TreeSnapshot(lambda: self.store.list_tree(token, head.tree_id))
        item = find_post_file(snapshot, self.layout, slug)
        if item is None:
            logger.info("No post found for slug '%s' at %s", slug, head.commit_id[:7])
            return None

        text = self.store.read_blob(token, item.object_id).decode("utf-8")
        front_matter, body = parse_front_matter(text)
        file_format = posixpath.splitext(item.path)[1].lstrip(".").lower()
        return Post(
            slug=slug,
            path=item.path,
            file_format=file_format,
            body=body,
            front_matter=front_matter,
            blob_id=item.object_id,
        )


__all__ = ["Post", "PostReader", "find_post_file"]
