"""Slash command registry."""

from __future__ import annotations

from .api import COMMAND as API_COMMAND
from .config import COMMAND as CONFIG_COMMAND
from .delete import COMMAND as DELETE_COMMAND
from .help import COMMAND as HELP_COMMAND
from .log import COMMAND as LOG_COMMAND
from .publish import COMMAND as PUBLISH_COMMAND
from .show import COMMAND as SHOW_COMMAND
from .site import COMMAND as SITE_COMMAND
from .status import COMMAND as STATUS_COMMAND

COMMANDS = [
    STATUS_COMMAND,
    HELP_COMMAND,
    PUBLISH_COMMAND,
    SHOW_COMMAND,
    DELETE_COMMAND,
    SITE_COMMAND,
    LOG_COMMAND,
    CONFIG_COMMAND,
    API_COMMAND,
]

__all__ = ["COMMANDS"]
