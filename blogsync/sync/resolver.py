"""Turn logical blog edits into concrete path operations."""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .errors import InvalidPath, InvalidSlug
from .frontmatter import stringify_front_matter
from .objects import PathOperation, TreeItem, check_repo_path
from .settings import AssetTarget, SiteSettings

logger = logging.getLogger("blogsync.sync.resolver")

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-_]*$")
POST_FORMATS = ("md", "mdx")


def validate_slug(slug: str) -> str:
    """Return ``slug`` unchanged if it is a valid post slug, else raise InvalidSlug."""
    if not isinstance(slug, str) or not SLUG_PATTERN.match(slug):
        raise InvalidSlug(slug)
    return slug


def check_post_content(front_matter: Mapping[str, Any], body: str) -> None:
    """Raise ValueError unless the post has a title and a non-blank body."""
    if not str(front_matter.get("title", "") or "").strip():
        raise ValueError("Front matter needs a title")
    if not body.strip():
        raise ValueError("Post body is empty")


@dataclass(frozen=True)
class ContentLayout:
    """Where posts, images, and site files live inside the repository."""

    blog_dir: str = "content/blog"
    images_dir: str = "public/images"
    public_dir: str = "public"
    config_file: str = "mahiro.config.yaml"
    default_format: str = "md"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ContentLayout":
        raw = (config or {}).get("content", {}) or {}
        return cls(
            blog_dir=str(raw.get("blog_dir", "content/blog")).strip("/"),
            images_dir=str(raw.get("images_dir", "public/images")).strip("/"),
            public_dir=str(raw.get("public_dir", "public")).strip("/"),
            config_file=str(raw.get("config_file", "mahiro.config.yaml")).strip("/"),
            default_format=str(raw.get("default_format", "md")),
        )

    def post_path(self, slug: str, file_format: str) -> str:
        return f"{self.blog_dir}/{slug}.{file_format}"

    def public_url(self, path: str) -> str:
        """URL a file under the public directory is served at."""
        prefix = f"{self.public_dir}/" if self.public_dir else ""
        if prefix and path.startswith(prefix):
            return "/" + path[len(prefix):]
        return "/" + path


class TreeSnapshot:
    """Lazily loaded listing of the blobs in a base tree."""

    def __init__(self, loader: Callable[[], Sequence[TreeItem]]):
        self._loader = loader
        self._items: Optional[List[TreeItem]] = None

    @classmethod
    def of(cls, items: Sequence[TreeItem]) -> "TreeSnapshot":
        return cls(lambda: list(items))

    @property
    def loaded(self) -> bool:
        return self._items is not None

    def items(self) -> List[TreeItem]:
        if self._items is None:
            self._items = list(self._loader())
            logger.debug("Listed %d files in base tree", len(self._items))
        return self._items

    @property
    def paths(self) -> List[str]:
        return [item.path for item in self.items()]

    def get(self, path: str) -> Optional[TreeItem]:
        for item in self.items():
            if item.path == path:
                return item
        return None

    def find_ignoring_case(self, path: str) -> List[TreeItem]:
        target = path.lower()
        return [item for item in self.items() if item.path.lower() == target]

    def files_in_dir_ignoring_case(self, parent: str, name: str) -> List[TreeItem]:
        """Every file below ``parent/<name>/`` where ``<name>`` matches case-insensitively."""
        prefix = f"{parent}/" if parent else ""
        wanted = name.lower()
        matches = []
        for item in self.items():
            if not item.path.startswith(prefix):
                continue
            rest = item.path[len(prefix):]
            head, sep, _ = rest.partition("/")
            if sep and head.lower() == wanted:
                matches.append(item)
        return matches


@dataclass(frozen=True)
class ImageAttachment:
    """An image uploaded alongside a post.

    ``placeholder`` is the reference used in the markdown body before upload
    (a local file name or preview URL); it is rewritten to the public URL.
    """

    filename: str
    content: bytes
    placeholder: Optional[str] = None
    cover: bool = False

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.filename)[1].lower()

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.content).hexdigest()[:16]


@dataclass
class PublishPost:
    slug: str
    body: str
    front_matter: Dict[str, Any] = field(default_factory=dict)
    file_format: Optional[str] = None
    images: Sequence[ImageAttachment] = ()
    original_slug: Optional[str] = None
    original_format: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return self.original_slug is not None

    def describe(self) -> str:
        verb = "Update" if self.is_update else "Publish"
        return f"{verb} post: {self.slug}"


@dataclass
class DeletePost:
    slug: str

    def describe(self) -> str:
        return f"Delete post: {self.slug}"


@dataclass
class BatchDeletePosts:
    slugs: Sequence[str]

    def describe(self) -> str:
        if len(self.slugs) == 1:
            return f"Delete post: {self.slugs[0]}"
        return f"Delete {len(self.slugs)} posts"


@dataclass(frozen=True)
class PendingAsset:
    target: AssetTarget
    content: bytes


@dataclass
class UpdateSiteConfig:
    settings: SiteSettings
    assets: Sequence[PendingAsset] = ()

    def describe(self) -> str:
        if self.assets:
            return f"Update site configuration and {len(self.assets)} asset(s)"
        return "Update site configuration"


ChangeRequest = Union[PublishPost, DeletePost, BatchDeletePosts, UpdateSiteConfig]


class ChangeSetResolver:
    """Resolves change requests against a snapshot of the base tree."""

    def __init__(self, layout: Optional[ContentLayout] = None):
        self.layout = layout or ContentLayout()

    def resolve(self, request: ChangeRequest, snapshot: TreeSnapshot) -> List[PathOperation]:
        if isinstance(request, PublishPost):
            operations = self._resolve_publish(request, snapshot)
        elif isinstance(request, DeletePost):
            operations = self._resolve_delete([request.slug], snapshot)
        elif isinstance(request, BatchDeletePosts):
            operations = self._resolve_delete(list(request.slugs), snapshot)
        elif isinstance(request, UpdateSiteConfig):
            operations = self._resolve_site_config(request)
        else:
            raise TypeError(f"Unsupported change request: {type(request).__name__}")

        for op in operations:
            check_repo_path(op.path)
        return operations

    def _resolve_publish(self, request: PublishPost, snapshot: TreeSnapshot) -> List[PathOperation]:
        slug = validate_slug(request.slug)
        file_format = request.file_format or self.layout.default_format
        if file_format not in POST_FORMATS:
            raise InvalidPath(self.layout.post_path(slug, file_format), "post format must be md or mdx")

        body = request.body
        front_matter = dict(request.front_matter)
        operations: List[PathOperation] = []
        written = set()

        for image in request.images:
            path = f"{self.layout.images_dir}/{slug}/{image.digest}{image.extension}"
            url = self.layout.public_url(path)
            if image.placeholder:
                body = body.replace(image.placeholder, url)
            if image.cover:
                front_matter["image"] = url
            if path in written:
                continue
            written.add(path)
            operations.append(PathOperation.write(path, image.content, encoding="base64"))

        post_path = self.layout.post_path(slug, file_format)
        text = stringify_front_matter(front_matter, body)
        operations.append(PathOperation.write(post_path, text.encode("utf-8")))

        if request.is_update:
            # Without a known previous format either extension may hold the old post.
            old_formats = (request.original_format,) if request.original_format else POST_FORMATS
            stale = [
                item
                for old_format in old_formats
                for item in snapshot.find_ignoring_case(self.layout.post_path(request.original_slug, old_format))
                if item.path != post_path
            ]
            if not stale and (request.original_slug, request.original_format) != (slug, file_format):
                logger.info("Previous post file for '%s' not found; nothing to remove", request.original_slug)
            operations.extend(PathOperation.delete(item.path) for item in stale)

        return operations

    def _resolve_delete(self, slugs: List[str], snapshot: TreeSnapshot) -> List[PathOperation]:
        for slug in slugs:
            validate_slug(slug)

        operations: List[PathOperation] = []
        seen = set()

        def _add(item: TreeItem) -> None:
            if item.path not in seen:
                seen.add(item.path)
                operations.append(PathOperation.delete(item.path))

        for slug in slugs:
            for item in snapshot.files_in_dir_ignoring_case(self.layout.images_dir, slug):
                _add(item)

            found_post = False
            for file_format in POST_FORMATS:
                for item in snapshot.find_ignoring_case(self.layout.post_path(slug, file_format)):
                    found_post = True
                    _add(item)

            if not found_post:
                logger.warning("No post file found for slug '%s'", slug)

        return operations

    def _resolve_site_config(self, request: UpdateSiteConfig) -> List[PathOperation]:
        settings = request.settings.copy()
        operations: List[PathOperation] = []

        for asset in request.assets:
            filename = asset.target.filename
            path = f"{self.layout.public_dir}/{filename}" if self.layout.public_dir else filename
            settings.set_asset(asset.target, self.layout.public_url(path))
            operations.append(PathOperation.write(path, asset.content, encoding="base64"))

        operations.append(
            PathOperation.write(self.layout.config_file, settings.to_yaml().encode("utf-8"))
        )
        return operations


__all__ = [
    "SLUG_PATTERN",
    "validate_slug",
    "check_post_content",
    "ContentLayout",
    "TreeSnapshot",
    "ImageAttachment",
    "PublishPost",
    "DeletePost",
    "BatchDeletePosts",
    "PendingAsset",
    "UpdateSiteConfig",
    "ChangeRequest",
    "ChangeSetResolver",
]
