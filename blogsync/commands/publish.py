"""Slash command for publishing a local markdown file as a post."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..slash_commands import SlashCommand, SlashCommandContext, describe_result
from ..sync import ImageAttachment, PublishPost, check_post_content, parse_front_matter

IMAGE_REF_PATTERN = re.compile(r"!\[[^\]]*\]\(([^)\s]+)")
REMOTE_PREFIXES = ("http://", "https://", "data:", "/")
FLAGS = {"--slug", "--format", "--update", "--cover"}

USAGE = "[publish] Usage: /publish FILE [--slug SLUG] [--format md|mdx] [--update OLD_SLUG] [--cover IMAGE]"


def _parse_args(args: List[str]) -> Tuple[Optional[str], Dict[str, str]]:
    path: Optional[str] = None
    options: Dict[str, str] = {}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in FLAGS and i + 1 < len(args):
            options[arg[2:]] = args[i + 1]
            i += 2
        elif not arg.startswith("-") and path is None:
            path = arg
            i += 1
        else:
            raise ValueError(f"Unexpected argument '{arg}'")
    return path, options


def _local_image(source_dir: Path, ref: str) -> Optional[Path]:
    if ref.startswith(REMOTE_PREFIXES):
        return None
    candidate = (source_dir / ref).resolve()
    return candidate if candidate.is_file() else None


def build_publish_request(
    file_path: Path,
    slug: Optional[str] = None,
    file_format: Optional[str] = None,
    original_slug: Optional[str] = None,
    cover: Optional[Path] = None,
) -> PublishPost:
    """Read a markdown file and its local images into a publish request."""

    text = file_path.read_text(encoding="utf-8")
    front_matter, body = parse_front_matter(text)

    check_post_content(front_matter, body)

    resolved_slug = slug or str(front_matter.pop("slug", "") or file_path.stem)
    front_matter.pop("slug", None)
    suffix = file_path.suffix.lstrip(".").lower()
    resolved_format = file_format or (suffix if suffix in ("md", "mdx") else None)

    images: List[ImageAttachment] = []
    for ref in dict.fromkeys(IMAGE_REF_PATTERN.findall(body)):
        local = _local_image(file_path.parent, ref)
        if local is not None:
            images.append(ImageAttachment(filename=local.name, content=local.read_bytes(), placeholder=ref))

    cover_ref = front_matter.get("image")
    if cover is None and isinstance(cover_ref, str):
        cover = _local_image(file_path.parent, cover_ref)
    if cover is not None:
        images.append(ImageAttachment(filename=cover.name, content=cover.read_bytes(), cover=True))

    return PublishPost(
        slug=resolved_slug,
        body=body,
        front_matter=front_matter,
        file_format=resolved_format,
        images=images,
        original_slug=original_slug,
    )


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    try:
        path_arg, options = _parse_args(args)
    except ValueError as exc:
        return f"[publish] {exc}\n{USAGE}"
    if not path_arg:
        return USAGE

    file_path = Path(path_arg).expanduser()
    if not file_path.is_file():
        return f"[publish] File not found: {file_path}"

    cover = Path(options["cover"]).expanduser() if "cover" in options else None
    if cover is not None and not cover.is_file():
        return f"[publish] Cover image not found: {cover}"

    try:
        request = build_publish_request(
            file_path,
            slug=options.get("slug"),
            file_format=options.get("format"),
            original_slug=options.get("update"),
            cover=cover,
        )
    except (ValueError, UnicodeDecodeError) as exc:
        return f"[publish] Cannot read {file_path.name}: {exc}"

    result = context.client().publish(context.token(), request)
    return describe_result("publish", result)


COMMAND = SlashCommand(
    name="publish",
    description="Publish or update a post from a markdown file. Usage: /publish FILE [--slug SLUG]",
    handler=_handler,
    requires_repository=True,
)
