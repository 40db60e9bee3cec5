"""Front matter parsing and serialization for markdown posts."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Tuple

import yaml

logger = logging.getLogger("blogsync.sync.frontmatter")

FRONT_MATTER_PATTERN = re.compile(r"^---\n(.+?)\n---\n(.*)$", re.DOTALL)


def parse_front_matter(text: str) -> Tuple[Dict[str, Any], str]:
    """Split a post into its front matter mapping and markdown body."""

    normalized = text.replace("\r\n", "\n")
    match = FRONT_MATTER_PATTERN.match(normalized)
    if match:
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError as exc:
            logger.error("Failed to parse front matter: %s", exc)
        else:
            if isinstance(data, dict):
                return data, match.group(2)
            logger.warning("Front matter is not a mapping; treating post as plain markdown")
    return {}, normalized


def stringify_front_matter(data: Mapping[str, Any], body: str) -> str:
    """Render a front matter block followed by the body.

    Empty values are dropped so the YAML stays clean, and ``draft: false`` is
    left out because it is the default.
    """

    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)) and not value:
            continue
        if key == "draft" and value is False:
            continue
        cleaned[key] = list(value) if isinstance(value, tuple) else value

    block = yaml.safe_dump(cleaned, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"---\n{block}---\n{body}"


__all__ = ["parse_front_matter", "stringify_front_matter"]
