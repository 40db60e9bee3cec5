"""Atomic content synchronization against a remote Git object store."""

from __future__ import annotations

from .addresser import GitHubObjectStore
from .client import SyncClient, SyncSettings
from .commit import CommitForge, RefAdvancer
from .composer import TreeRequest, compose_tree
from .errors import (
    Conflict,
    InvalidPath,
    InvalidSlug,
    NotFound,
    PartialUploadFailure,
    RateLimited,
    RemoteRejected,
    RemoteUnavailable,
    StaleBranch,
    SyncError,
    Unauthorized,
)
from .frontmatter import parse_front_matter, stringify_front_matter
from .objects import (
    BranchHead,
    CommitSummary,
    OperationKind,
    PathOperation,
    Transaction,
    TreeEntry,
    TreeItem,
)
from .orchestrator import SyncOrchestrator, TransactionResult, TransactionState
from .posts import Post, PostReader
from .resolver import (
    BatchDeletePosts,
    ChangeSetResolver,
    ContentLayout,
    DeletePost,
    ImageAttachment,
    PendingAsset,
    PublishPost,
    TreeSnapshot,
    UpdateSiteConfig,
    check_post_content,
    validate_slug,
)
from .retry import RetryPolicy, run_with_retry
from .settings import AssetTarget, SiteSettings, SocialLink

__all__ = [
    # Store
    "GitHubObjectStore",
    # Objects
    "BranchHead",
    "CommitSummary",
    "OperationKind",
    "PathOperation",
    "Transaction",
    "TreeEntry",
    "TreeItem",
    # Resolution
    "ChangeSetResolver",
    "ContentLayout",
    "TreeSnapshot",
    "PublishPost",
    "DeletePost",
    "BatchDeletePosts",
    "UpdateSiteConfig",
    "ImageAttachment",
    "PendingAsset",
    "validate_slug",
    "check_post_content",
    # Tree, commit, ref
    "TreeRequest",
    "compose_tree",
    "CommitForge",
    "RefAdvancer",
    # Orchestration
    "SyncOrchestrator",
    "TransactionResult",
    "TransactionState",
    "RetryPolicy",
    "run_with_retry",
    # Client
    "SyncClient",
    "SyncSettings",
    # Content
    "Post",
    "PostReader",
    "SiteSettings",
    "SocialLink",
    "AssetTarget",
    "parse_front_matter",
    "stringify_front_matter",
    # Errors
    "SyncError",
    "InvalidSlug",
    "InvalidPath",
    "NotFound",
    "Unauthorized",
    "RateLimited",
    "RemoteUnavailable",
    "RemoteRejected",
    "Conflict",
    "StaleBranch",
    "PartialUploadFailure",
]
