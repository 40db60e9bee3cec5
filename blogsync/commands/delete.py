"""Slash command for deleting one or more posts with their images."""

from __future__ import annotations

from typing import List

from ..slash_commands import SlashCommand, SlashCommandContext, describe_result


def _handler(context: SlashCommandContext, args: List[str]) -> str:
    slugs = list(dict.fromkeys(arg for arg in args if arg.strip()))
    if not slugs:
        return "[delete] Usage: /delete SLUG [SLUG ...]"

    client = context.client()
    token = context.token()
    if len(slugs) == 1:
        result = client.delete_post(token, slugs[0])
    else:
        result = client.delete_posts(token, slugs)
    return describe_result("delete", result)


COMMAND = SlashCommand(
    name="delete",
    description="Delete posts and their image folders in one commit. Usage: /delete SLUG [SLUG ...]",
    handler=_handler,
    requires_repository=True,
)
