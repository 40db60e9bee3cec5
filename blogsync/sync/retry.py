"""Caller-side retry policy for transactions.

The orchestrator never retries on its own. A caller that wants to ride out
concurrent edits wraps :meth:`SyncOrchestrator.run` with :func:`run_with_retry`,
which re-runs the whole transaction (fresh head, fresh resolution) when the
branch moved underneath it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .errors import PartialUploadFailure, RateLimited, StaleBranch
from .orchestrator import TransactionResult
from .resolver import ChangeRequest

logger = logging.getLogger("blogsync.sync.retry")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: float = 0.5
    multiplier: float = 2.0
    retry_rate_limited: bool = False
    max_retry_after: float = 60.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RetryPolicy":
        raw = ((config or {}).get("sync", {}) or {}).get("retry", {}) or {}
        return cls(
            max_attempts=max(1, int(raw.get("max_attempts", 3))),
            backoff=float(raw.get("backoff", 0.5)),
            multiplier=float(raw.get("multiplier", 2.0)),
            retry_rate_limited=bool(raw.get("retry_rate_limited", False)),
            max_retry_after=float(raw.get("max_retry_after", 60.0)),
        )

    @classmethod
    def never(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    def delay_for(self, attempt: int, result: TransactionResult) -> Optional[float]:
        """Seconds to wait before attempt ``attempt + 1``, or None to stop."""
        if attempt >= self.max_attempts:
            return None
        error = result.error
        if isinstance(error, PartialUploadFailure):
            error = error.cause
        if isinstance(error, StaleBranch):
            return self.backoff * (self.multiplier ** (attempt - 1))
        if isinstance(error, RateLimited) and self.retry_rate_limited:
            wait = error.retry_after if error.retry_after is not None else self.backoff
            if wait > self.max_retry_after:
                return None
            return wait
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "backoff": self.backoff,
            "multiplier": self.multiplier,
            "retry_rate_limited": self.retry_rate_limited,
            "max_retry_after": self.max_retry_after,
        }


def run_with_retry(
    orchestrator: Any,
    request: ChangeRequest,
    token: str,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> TransactionResult:
    """Run ``request`` until it succeeds or the policy gives up."""

    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        result = orchestrator.run(request, token)
        if result.success:
            if attempt > 1:
                logger.info("Transaction succeeded on attempt %d", attempt)
            return result

        delay = policy.delay_for(attempt, result)
        if delay is None:
            return result

        logger.warning(
            "Attempt %d/%d failed (%s); retrying in %.1fs",
            attempt,
            policy.max_attempts,
            result.error.code if result.error else "unknown",
            delay,
            extra={"attempt": attempt, "error_code": result.error.code if result.error else None},
        )
        sleep(delay)
        attempt += 1


__all__ = ["RetryPolicy", "run_with_retry"]
