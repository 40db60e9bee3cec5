"""Tests for the caller-side retry policy."""

from __future__ import annotations

from conftest import FakeObjectStore

from blogsync.sync import (
    PublishPost,
    RateLimited,
    RemoteUnavailable,
    RetryPolicy,
    SyncOrchestrator,
    run_with_retry,
)


def _racing_store(races: int) -> FakeObjectStore:
    """Store whose branch is moved by someone else before the first ``races`` ref updates."""
    store = FakeObjectStore()
    store.seed({"README.md": "hi"})
    remaining = {"count": races}

    def _race(branch):
        store.seed({f"other-{remaining['count']}.md": "x"}, branch=branch, message="concurrent")
        remaining["count"] -= 1
        if remaining["count"] > 0:
            store.before_advance = _race

    if races:
        store.before_advance = _race
    return store


def test_stale_branch_is_retried_from_fresh_head(token):
    store = _racing_store(races=1)
    sleeps = []

    result = run_with_retry(
        SyncOrchestrator(store, "main"),
        PublishPost(slug="hello", body="# Hi"),
        token,
        RetryPolicy(max_attempts=3, backoff=0.5),
        sleep=sleeps.append,
    )

    assert result.success
    assert sleeps == [0.5]
    assert store.count("read_ref") >= 2
    files = store.files()
    assert "content/blog/hello.md" in files and "other-1.md" in files


def test_retry_gives_up_after_max_attempts(token):
    store = _racing_store(races=5)
    sleeps = []

    result = run_with_retry(
        SyncOrchestrator(store, "main"),
        PublishPost(slug="hello", body="# Hi"),
        token,
        RetryPolicy(max_attempts=3, backoff=1.0, multiplier=2.0),
        sleep=sleeps.append,
    )

    assert not result.success
    assert result.error.code == "stale_branch"
    assert sleeps == [1.0, 2.0]
    assert store.count("create_commit") == 3


def test_non_retryable_failures_return_immediately(store, token):
    store.fail("create_blob", RemoteUnavailable("down"))
    sleeps = []

    result = run_with_retry(
        SyncOrchestrator(store, "main"),
        PublishPost(slug="hello", body="# Hi"),
        token,
        RetryPolicy(),
        sleep=sleeps.append,
    )

    assert not result.success
    assert sleeps == []
    assert store.count("read_ref") == 1


def test_rate_limit_retry_is_opt_in(store, token):
    store.fail("read_ref", RateLimited(retry_after=2.0))
    orchestrator = SyncOrchestrator(store, "main")
    request = PublishPost(slug="hello", body="# Hi")

    sleeps = []
    run_with_retry(orchestrator, request, token, RetryPolicy(), sleep=sleeps.append)
    assert sleeps == []

    run_with_retry(orchestrator, request, token, RetryPolicy(retry_rate_limited=True), sleep=sleeps.append)
    assert sleeps == [2.0, 2.0]


def test_rate_limited_blob_upload_is_retried(store, token):
    store.fail("create_blob", RateLimited(retry_after=1.0))
    sleeps = []

    result = run_with_retry(
        SyncOrchestrator(store, "main"),
        PublishPost(slug="hello", body="# Hi"),
        token,
        RetryPolicy(retry_rate_limited=True),
        sleep=sleeps.append,
    )

    assert result.error.code == "partial_upload_failure"
    assert sleeps == [1.0, 1.0]
    assert store.count("read_ref") == 3


def test_rate_limit_waits_longer_than_cap_are_not_retried(store, token):
    store.fail("read_ref", RateLimited(retry_after=3600))
    sleeps = []
    policy = RetryPolicy(retry_rate_limited=True, max_retry_after=60)

    result = run_with_retry(SyncOrchestrator(store, "main"), PublishPost(slug="a", body="b"), token, policy, sleep=sleeps.append)

    assert result.error.code == "rate_limited"
    assert sleeps == []


def test_policy_from_config_and_never():
    policy = RetryPolicy.from_config(
        {
            "sync": {
                "retry": {
                    "max_attempts": 5,
                    "backoff": 0.1,
                    "multiplier": 3,
                    "retry_rate_limited": True,
                    "max_retry_after": 10,
                }
            }
        }
    )
    assert policy.max_attempts == 5
    assert policy.backoff == 0.1
    assert policy.multiplier == 3.0
    assert policy.max_retry_after == 10.0
    assert policy.retry_rate_limited is True
    assert RetryPolicy.from_config({}).multiplier == 2.0
    assert RetryPolicy.from_config({}).max_attempts == 3
    assert RetryPolicy.never().max_attempts == 1
