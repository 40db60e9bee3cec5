"""Tests for running change requests as single atomic commits."""

from __future__ import annotations

import threading
import time

import pytest

from conftest import FakeObjectStore, blob_id_for

from blogsync.sync import (
    BatchDeletePosts,
    ContentLayout,
    DeletePost,
    ImageAttachment,
    InvalidSlug,
    NotFound,
    PartialUploadFailure,
    PublishPost,
    RemoteUnavailable,
    StaleBranch,
    SyncOrchestrator,
    TransactionState,
    Unauthorized,
)


def _orchestrator(store, **kwargs) -> SyncOrchestrator:
    return SyncOrchestrator(store, "main", **kwargs)


def test_publish_hello_creates_exactly_one_commit(store, token):
    head_before = store.refs["main"]
    tree_before = store.commits[head_before][0]

    result = _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token)

    assert result.success and result.state is TransactionState.DONE
    assert result.applied_paths == ["content/blog/hello.md"]
    assert store.count("create_blob") == 1
    assert store.count("create_tree") == 1
    assert store.count("create_commit") == 1
    assert store.count("advance_ref") == 1
    assert store.refs["main"] == result.commit_id
    tree_id, parents, message = store.commits[result.commit_id]
    assert parents == (head_before,)
    assert result.parent_id == head_before
    assert message == "Publish post: hello"
    files = store.files()
    assert set(files) == {"README.md", "content/blog/hello.md"}
    assert files["content/blog/hello.md"].endswith(b"# Hi")
    assert tree_id != tree_before


def test_publish_new_post_never_lists_tree(store, token):
    _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token)
    assert store.count("list_tree") == 0


def test_blob_creation_is_idempotent(store, token):
    first = store.create_blob(token, "same content")
    second = store.create_blob(token, "same content")
    assert first == second == blob_id_for(b"same content")


def test_batch_delete_with_one_missing_slug_commits_once(token):
    store = FakeObjectStore()
    store.seed({"content/blog/a.md": "a", "public/images/a/p.png": b"png", "content/blog/c.md": "c"})

    result = _orchestrator(store).run(BatchDeletePosts(["a", "b"]), token)

    assert result.success and not result.nothing_to_do
    assert sorted(result.applied_paths) == ["content/blog/a.md", "public/images/a/p.png"]
    assert store.count("create_commit") == 1
    assert set(store.files()) == {"content/blog/c.md"}


def test_delete_of_missing_post_is_nothing_to_do(store, token):
    head = store.refs["main"]
    result = _orchestrator(store).run(DeletePost("ghost"), token)

    assert result.success and result.nothing_to_do
    assert result.state is TransactionState.NOTHING_TO_DO
    assert store.refs["main"] == head
    assert store.count("create_tree") == 0


def test_delete_removes_images_with_case_insensitive_directory(token):
    store = FakeObjectStore()
    store.seed({
        "images/Foo/a.png": b"a",
        "images/Foo/b.png": b"b",
        "content/blog/foo.md": "foo",
        "content/blog/keep.md": "keep",
    })
    result = _orchestrator(store, layout=ContentLayout(images_dir="images")).run(DeletePost("foo"), token)

    assert len(result.applied_paths) == 3
    assert set(store.files()) == {"content/blog/keep.md"}


@pytest.mark.parametrize(
    "method, failed_at",
    [
        ("read_ref", TransactionState.READING_HEAD),
        ("create_blob", TransactionState.UPLOADING_BLOBS),
        ("create_tree", TransactionState.COMPOSING_TREE),
        ("create_commit", TransactionState.FORGING_COMMIT),
        ("advance_ref", TransactionState.ADVANCING_REF),
    ],
)
def test_failure_at_any_step_leaves_branch_untouched(store, token, method, failed_at):
    head = store.refs["main"]
    store.fail(method, RemoteUnavailable("boom"))

    result = _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token)

    assert not result.success
    assert result.state is TransactionState.FAILED
    assert result.failed_at is failed_at
    assert store.refs["main"] == head
    assert "content/blog/hello.md" not in store.files()


def test_failure_stops_later_steps(store, token):
    store.fail("create_tree", RemoteUnavailable("boom"))
    _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token)
    assert store.count("create_commit") == 0
    assert store.count("advance_ref") == 0


def test_lost_race_reports_stale_branch(store, token):
    def _concurrent_edit(branch):
        store.seed({"content/blog/other.md": "other"}, branch=branch, message="concurrent")

    store.before_advance = _concurrent_edit
    result = _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token)

    assert isinstance(result.error, StaleBranch)
    assert result.error.retryable
    assert result.failed_at is TransactionState.ADVANCING_REF
    winner = store.refs["main"]
    assert store.commits[winner][2] == "concurrent"
    assert "content/blog/hello.md" not in store.files()


def test_two_transactions_from_same_head_only_first_wins(store, token):
    orchestrator = _orchestrator(store)
    head = orchestrator.read_head(token)
    first = store.create_commit(token, "A", head.tree_id, [head.commit_id])
    second = store.create_commit(token, "B", head.tree_id, [head.commit_id])

    orchestrator.advancer.advance(token, "main", head.commit_id, first)
    with pytest.raises(StaleBranch):
        orchestrator.advancer.advance(token, "main", head.commit_id, second)

    assert store.refs["main"] == first
    assert second not in [summary.commit_id for summary in store.list_commits(token, "main")]


def test_partial_upload_failure_aborts_transaction(store, token):
    store.fail("create_blob", RemoteUnavailable("upload died"), after=1)
    images = [
        ImageAttachment(filename=f"{i}.png", content=f"image {i}".encode(), placeholder=f"{i}.png")
        for i in range(3)
    ]
    head = store.refs["main"]

    result = _orchestrator(store, upload_concurrency=2).run(
        PublishPost(slug="gallery", body="0.png 1.png 2.png", images=images), token
    )

    assert isinstance(result.error, PartialUploadFailure)
    assert isinstance(result.error.cause, RemoteUnavailable)
    assert result.error.retryable
    assert result.failed_at is TransactionState.UPLOADING_BLOBS
    assert store.count("create_tree") == 0
    assert store.refs["main"] == head


def test_invalid_slug_fails_while_resolving(store, token):
    result = _orchestrator(store).run(PublishPost(slug="My Post", body="x"), token)
    assert isinstance(result.error, InvalidSlug)
    assert result.failed_at is TransactionState.RESOLVING_CHANGES
    assert store.count("create_blob") == 0


def test_unauthorized_and_missing_branch_are_reported(token):
    store = FakeObjectStore()
    result = _orchestrator(store).run(DeletePost("a"), token)
    assert isinstance(result.error, NotFound)

    store.seed({"a.md": "a"})
    result = _orchestrator(store).run(DeletePost("a"), "wrong-token")
    assert isinstance(result.error, Unauthorized)
    assert result.failed_at is TransactionState.READING_HEAD


def test_progress_callback_reports_every_step(store, token):
    events = []
    orchestrator = _orchestrator(store, progress_callback=lambda msg, cur, total: events.append((msg, cur, total)))

    orchestrator.run(PublishPost(slug="hello", body="# Hi"), token)

    assert [cur for _, cur, _ in events] == [1, 2, 3, 4, 5, 6, 6]
    assert all(total == 6 for _, _, total in events)
    assert events[-1][0] == "Done"


def test_explicit_commit_message_is_used(store, token):
    result = _orchestrator(store).run(PublishPost(slug="hello", body="# Hi"), token, message="custom")
    assert store.commits[result.commit_id][2] == "custom"


def test_upload_concurrency_must_be_positive(store):
    with pytest.raises(ValueError):
        _orchestrator(store, upload_concurrency=0)


class _TrackingStore(FakeObjectStore):
    """Records how many blob uploads run at the same time."""

    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.peak = 0
        self._gauge = threading.Lock()

    def create_blob(self, token: str, content: str, encoding: str = "utf-8") -> str:
        with self._gauge:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            time.sleep(0.05)
            return super().create_blob(token, content, encoding)
        finally:
            with self._gauge:
                self.in_flight -= 1


def test_blob_uploads_never_exceed_concurrency_limit(token):
    store = _TrackingStore()
    store.seed({"README.md": "# blog\n"})
    images = [
        ImageAttachment(filename=f"{index}.png", content=f"image {index}".encode("ascii"), placeholder=f"{index}.png")
        for index in range(6)
    ]

    result = _orchestrator(store, upload_concurrency=2).run(
        PublishPost(slug="gallery", body="pics", front_matter={"title": "Gallery"}, images=images), token
    )

    assert result.success
    assert store.count("create_blob") == 7
    assert store.peak == 2
