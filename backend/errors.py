"""Command result classes and the errors raised by route commands."""

from __future__ import annotations

from enum import Enum


class CommandResult(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"                # malformed show input / not found, no effect
    CONFIG_FAILED = "config_failed"    # write-path validation failure


class RouteCommandError(Exception):
    """
    Base error for route commands.

    `code` names the failure (e.g. 'malformed_address') and `message` is the
    operator-facing line. Whether it ends up as a warning or a rejected
    config is decided by the command that caught it.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class MalformedInput(RouteCommandError):
    """Unparsable address, mask, flag, label, distance or tag."""


class NotFound(RouteCommandError):
    """Unknown VRF, prefix or interface."""


class Rejected(RouteCommandError):
    """A capability the command needs is turned off (e.g. MPLS)."""
