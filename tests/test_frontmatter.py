"""Tests for front matter handling."""

from __future__ import annotations

from blogsync.sync import parse_front_matter, stringify_front_matter


def test_parse_front_matter_splits_yaml_and_body():
    text = "---\r\ntitle: Hello\r\ntags:\r\n  - a\r\n---\r\n# Body\r\n"
    data, body = parse_front_matter(text)
    assert data == {"title": "Hello", "tags": ["a"]}
    assert body == "# Body\n"


def test_parse_front_matter_without_block_returns_whole_text():
    assert parse_front_matter("# Just markdown") == ({}, "# Just markdown")


def test_parse_front_matter_with_invalid_yaml_keeps_text():
    text = "---\ntitle: [unclosed\n---\nbody"
    data, body = parse_front_matter(text)
    assert data == {}
    assert body == text


def test_stringify_drops_empty_values_and_default_draft():
    text = stringify_front_matter(
        {"title": "Hi", "description": "", "tags": [], "draft": False, "image": None, "pinned": True},
        "# Hi",
    )
    assert text == "---\ntitle: Hi\npinned: true\n---\n# Hi"


def test_stringify_keeps_draft_true_and_unicode():
    text = stringify_front_matter({"title": "日記", "draft": True}, "body")
    data, body = parse_front_matter(text)
    assert data == {"title": "日記", "draft": True}
    assert "日記" in text
    assert body == "body"
