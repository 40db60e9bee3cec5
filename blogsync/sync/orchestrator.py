"""Runs one change request as a single atomic commit."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .commit import CommitForge, RefAdvancer
from .composer import compose_tree
from .errors import PartialUploadFailure, SyncError
from .objects import BranchHead, ObjectId, PathOperation, Transaction
from .resolver import ChangeRequest, ChangeSetResolver, ContentLayout, TreeSnapshot

logger = logging.getLogger("blogsync.sync.orchestrator")

DEFAULT_UPLOAD_CONCURRENCY = 4

ProgressCallback = Callable[[str, int, int], None]


class TransactionState(str, Enum):
    """Steps a transaction moves through."""
    IDLE = "idle"
    READING_HEAD = "reading_head"
    RESOLVING_CHANGES = "resolving_changes"
    UPLOADING_BLOBS = "uploading_blobs"
    COMPOSING_TREE = "composing_tree"
    FORGING_COMMIT = "forging_commit"
    ADVANCING_REF = "advancing_ref"
    DONE = "done"
    NOTHING_TO_DO = "nothing_to_do"
    FAILED = "failed"


_STEPS = {
    TransactionState.READING_HEAD: (1, "Reading branch head"),
    TransactionState.RESOLVING_CHANGES: (2, "Resolving changes"),
    TransactionState.UPLOADING_BLOBS: (3, "Uploading blobs"),
    TransactionState.COMPOSING_TREE: (4, "Composing tree"),
    TransactionState.FORGING_COMMIT: (5, "Creating commit"),
    TransactionState.ADVANCING_REF: (6, "Updating branch"),
}
TOTAL_STEPS = len(_STEPS)


@dataclass
class TransactionResult:
    """Outcome of a transaction: a new head, nothing to do, or a typed failure."""

    status: str  # "done", "nothing_to_do", "failed"
    state: TransactionState
    message: str = ""
    commit_id: Optional[ObjectId] = None
    tree_id: Optional[ObjectId] = None
    parent_id: Optional[ObjectId] = None
    applied_paths: List[str] = field(default_factory=list)
    error: Optional[SyncError] = None
    failed_at: Optional[TransactionState] = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

    @property
    def nothing_to_do(self) -> bool:
        return self.status == "nothing_to_do"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "state": self.state.value,
            "message": self.message,
            "commit": self.commit_id,
            "tree": self.tree_id,
            "parent": self.parent_id,
            "paths": list(self.applied_paths),
            "error": self.error.to_dict() if self.error else None,
            "failed_at": self.failed_at.value if self.failed_at else None,
        }


class SyncOrchestrator:
    """Sequences head read, resolution, uploads, tree, commit, and ref update.

    The branch head is read fresh for every call to :meth:`run` and passed
    along explicitly; nothing about it survives the call. No step is retried
    here. Callers that want retries wrap :meth:`run` (see ``retry.py``).
    """

    def __init__(
        self,
        store: Any,
        branch: str,
        layout: Optional[ContentLayout] = None,
        upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        if upload_concurrency < 1:
            raise ValueError("upload_concurrency must be at least 1")
        self.store = store
        self.branch = branch
        self.resolver = ChangeSetResolver(layout)
        self.upload_concurrency = upload_concurrency
        self.progress_callback = progress_callback
        self.forge = CommitForge(store)
        self.advancer = RefAdvancer(store)

    def read_head(self, token: str) -> BranchHead:
        commit_id = self.store.read_ref(token, self.branch)
        tree_id = self.store.read_commit_tree(token, commit_id)
        return BranchHead(branch=self.branch, commit_id=commit_id, tree_id=tree_id)

    def run(
        self,
        request: ChangeRequest,
        token: str,
        message: Optional[str] = None,
    ) -> TransactionResult:
        """Apply ``request`` as exactly one commit, or leave the branch untouched."""

        commit_message = message or request.describe()
        state = TransactionState.IDLE
        head: Optional[BranchHead] = None

        try:
            state = self._enter(TransactionState.READING_HEAD)
            head = self.read_head(token)
            logger.debug("Head of %s is %s (tree %s)", head.branch, head.commit_id, head.tree_id)

            state = self._enter(TransactionState.RESOLVING_CHANGES)
            base_tree_id = head.tree_id
            snapshot = TreeSnapshot(lambda: self.store.list_tree(token, base_tree_id))
            operations = self.resolver.resolve(request, snapshot)
            if not operations:
                logger.info("Nothing to commit for '%s'", commit_message)
                return TransactionResult(
                    status="nothing_to_do",
                    state=TransactionState.NOTHING_TO_DO,
                    message=commit_message,
                    parent_id=head.commit_id,
                )
            transaction = Transaction.create(commit_message, operations)

            state = self._enter(TransactionState.UPLOADING_BLOBS)
            blob_ids = self._upload_blobs(token, transaction.writes)

            state = self._enter(TransactionState.COMPOSING_TREE)
            known_paths = snapshot.paths if transaction.deletes else None
            tree_request = compose_tree(head.tree_id, transaction.operations, blob_ids, known_paths)
            tree_id = self.store.create_tree(token, tree_request.entries, head.tree_id)

            state = self._enter(TransactionState.FORGING_COMMIT)
            commit_id = self.forge.forge(token, transaction.message, tree_id, head.commit_id)

            state = self._enter(TransactionState.ADVANCING_REF)
            self.advancer.advance(token, head.branch, head.commit_id, commit_id)

        except SyncError as exc:
            logger.error(
                "Transaction '%s' failed while %s: %s",
                commit_message,
                state.value,
                exc.message,
                extra={"state": state.value, "error_code": exc.code, "branch": head.branch if head else None},
            )
            return TransactionResult(
                status="failed",
                state=TransactionState.FAILED,
                message=commit_message,
                parent_id=head.commit_id if head else None,
                error=exc,
                failed_at=state,
            )

        logger.info(
            "Committed %d change(s) to %s as %s: %s",
            len(transaction),
            head.branch,
            commit_id[:7],
            commit_message,
            extra={"branch": head.branch, "commit": commit_id, "state": TransactionState.DONE.value},
        )
        self._report("Done", TOTAL_STEPS, TOTAL_STEPS)
        return TransactionResult(
            status="done",
            state=TransactionState.DONE,
            message=commit_message,
            commit_id=commit_id,
            tree_id=tree_id,
            parent_id=head.commit_id,
            applied_paths=transaction.paths,
        )

    def _upload_blobs(self, token: str, writes: Sequence[PathOperation]) -> Dict[str, ObjectId]:
        """Upload every write in parallel; the first failure abandons the rest."""

        blob_ids: Dict[str, ObjectId] = {}
        if not writes:
            return blob_ids

        executor = ThreadPoolExecutor(
            max_workers=min(self.upload_concurrency, len(writes)),
            thread_name_prefix="blogsync-upload",
        )
        try:
            futures = {
                executor.submit(self.store.create_blob, token, op.payload(), op.encoding): op
                for op in writes
            }
            for future in as_completed(futures):
                op = futures[future]
                try:
                    blob_ids[op.path] = future.result()
                except SyncError as exc:
                    raise PartialUploadFailure(op.path, exc) from exc
                logger.debug("Uploaded %s as %s (%d/%d)", op.path, blob_ids[op.path], len(blob_ids), len(writes))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return blob_ids

    def _enter(self, state: TransactionState) -> TransactionState:
        step, label = _STEPS[state]
        self._report(label, step, TOTAL_STEPS)
        return state

    def _report(self, message: str, current: int, total: int) -> None:
        """Report progress if a callback is configured."""
        if self.progress_callback:
            self.progress_callback(message, current, total)
        logger.debug("Sync progress: %s (%d/%d)", message, current, total)


__all__ = [
    "SyncOrchestrator",
    "TransactionResult",
    "TransactionState",
    "DEFAULT_UPLOAD_CONCURRENCY",
]
