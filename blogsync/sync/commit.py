"""Commit creation and conditional branch advancement."""

from __future__ import annotations

import logging
from typing import Any

from .errors import Conflict, StaleBranch
from .objects import ObjectId

logger = logging.getLogger("blogsync.sync.commit")


class CommitForge:
    """Creates single-parent commits."""

    def __init__(self, store: Any):
        self.store = store

    def forge(
        self,
        token: str,
        message: str,
        tree_id: ObjectId,
        parent_commit_id: ObjectId,
    ) -> ObjectId:
        commit_id = self.store.create_commit(token, message, tree_id, [parent_commit_id])
        logger.debug("Created commit %s (tree %s, parent %s)", commit_id, tree_id, parent_commit_id)
        return commit_id


class RefAdvancer:
    """Moves a branch forward without ever force-overwriting it."""

    def __init__(self, store: Any):
        self.store = store

    def advance(
        self,
        token: str,
        branch: str,
        expected_commit_id: ObjectId,
        new_commit_id: ObjectId,
    ) -> None:
        try:
            self.store.advance_ref(token, branch, expected_commit_id, new_commit_id)
        except Conflict as exc:
            logger.warning("Branch %s moved past %s; update rejected", branch, expected_commit_id)
            raise StaleBranch(branch, expected_commit_id, exc.actual) from exc
        logger.info("Advanced %s: %s -> %s", branch, expected_commit_id[:7], new_commit_id[:7])


__all__ = ["CommitForge", "RefAdvancer"]
