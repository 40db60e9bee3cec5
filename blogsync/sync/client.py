"""High-level client tying configuration to the synchronization engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .addresser import DEFAULT_API_URL, DEFAULT_TIMEOUT, GitHubObjectStore
from .objects import BranchHead, CommitSummary
from .orchestrator import DEFAULT_UPLOAD_CONCURRENCY, SyncOrchestrator, TransactionResult
from .posts import Post, PostReader
from .resolver import (
    BatchDeletePosts,
    ContentLayout,
    DeletePost,
    PendingAsset,
    PublishPost,
    TreeSnapshot,
    UpdateSiteConfig,
)
from .retry import RetryPolicy, run_with_retry
from .settings import SiteSettings

logger = logging.getLogger("blogsync.sync.client")


@dataclass
class SyncSettings:
    """Settings for talking to the blog repository."""

    owner: str = ""
    repo: str = ""
    branch: str = "main"
    api_url: str = DEFAULT_API_URL
    token_env: str = "GITHUB_TOKEN"
    timeout: float = DEFAULT_TIMEOUT
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY
    layout: ContentLayout = field(default_factory=ContentLayout)
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SyncSettings":
        config = config or {}
        repo = config.get("repository", {}) or {}
        sync = config.get("sync", {}) or {}
        return cls(
            owner=str(repo.get("owner", "")),
            repo=str(repo.get("name", "")),
            branch=str(repo.get("branch", "main")),
            api_url=str(repo.get("api_url", DEFAULT_API_URL)),
            token_env=str(repo.get("token_env", "GITHUB_TOKEN")),
            timeout=float(repo.get("timeout", DEFAULT_TIMEOUT)),
            upload_concurrency=max(1, int(sync.get("upload_concurrency", DEFAULT_UPLOAD_CONCURRENCY))),
            layout=ContentLayout.from_config(config),
            retry=RetryPolicy.from_config(config),
        )

    @property
    def configured(self) -> bool:
        return bool(self.owner and self.repo)

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def resolve_token(self, env: Optional[Mapping[str, str]] = None) -> str:
        source = env if env is not None else os.environ
        return source.get(self.token_env, "")


class SyncClient:
    """Entry point for publishing, deleting, and reading blog content."""

    def __init__(
        self,
        settings: SyncSettings,
        store: Optional[Any] = None,
        progress_callback: Optional[Callable[[str, int, int], None]] = None,
    ):
        self.settings = settings
        self.store = store or GitHubObjectStore(
            settings.owner,
            settings.repo,
            api_url=settings.api_url,
            timeout=settings.timeout,
        )
        self.orchestrator = SyncOrchestrator(
            self.store,
            settings.branch,
            layout=settings.layout,
            upload_concurrency=settings.upload_concurrency,
            progress_callback=progress_callback,
        )
        self.reader = PostReader(self.store, settings.layout)

    # -- transactions ---------------------------------------------------------

    def publish(self, token: str, request: PublishPost) -> TransactionResult:
        return self._run(token, request)

    def delete_post(self, token: str, slug: str) -> TransactionResult:
        return self._run(token, DeletePost(slug))

    def delete_posts(self, token: str, slugs: Sequence[str]) -> TransactionResult:
        return self._run(token, BatchDeletePosts(list(slugs)))

    def update_site(
        self,
        token: str,
        settings: SiteSettings,
        assets: Sequence[PendingAsset] = (),
    ) -> TransactionResult:
        return self._run(token, UpdateSiteConfig(settings, list(assets)))

    def _run(self, token: str, request: Any) -> TransactionResult:
        result = run_with_retry(self.orchestrator, request, token, self.settings.retry)
        if result.success:
            logger.info("%s -> %s", request.describe(), result.status)
        return result

    # -- reads ----------------------------------------------------------------

    def head(self, token: str) -> BranchHead:
        return self.orchestrator.read_head(token)

    def load_post(self, token: str, slug: str) -> Optional[Post]:
        return self.reader.load(token, self.head(token), slug)

    def load_site_settings(self, token: str) -> SiteSettings:
        head = self.head(token)
        snapshot = TreeSnapshot(lambda: self.store.list_tree(token, head.tree_id))
        item = snapshot.get(self.settings.layout.config_file)
        if item is None:
            logger.warning("Site configuration %s not found; starting empty", self.settings.layout.config_file)
            return SiteSettings()
        text = self.store.read_blob(token, item.object_id).decode("utf-8")
        return SiteSettings.from_yaml(text)

    def history(self, token: str, path: Optional[str] = None, limit: int = 20) -> List[CommitSummary]:
        return self.store.list_commits(token, self.settings.branch, path=path, limit=limit)

    def get_status(self, token: str) -> Dict[str, Any]:
        head = self.head(token)
        return {
            "repository": self.settings.slug,
            "branch": head.branch,
            "commit": head.commit_id,
            "tree": head.tree_id,
            "blog_dir": self.settings.layout.blog_dir,
            "images_dir": self.settings.layout.images_dir,
        }


__all__ = ["SyncClient", "SyncSettings"]
