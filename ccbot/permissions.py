"""``{require;...}`` and ``{not;...}`` permission gates."""

from __future__ import annotations

import logging

from .environment import InvocationSnapshot
from .errors import ConfigurationError, InstructionError, PermissionDenied

logger = logging.getLogger("ccbot.permissions")

SERVER_MOD = "serverMod"


def enforce_require(requirement: str, snapshot: InvocationSnapshot) -> None:
    """Raise unless the invoker satisfies ``requirement``."""
    requirement = _clean(requirement, "require")
    if requirement == SERVER_MOD:
        if not snapshot.user.manage_guild:
            raise PermissionDenied("You do not have permission to use this command.")
        return

    if requirement.startswith("#"):
        channel_name = requirement[1:]
        channel = snapshot.server.find_text_channel(channel_name)
        if channel is None:
            raise ConfigurationError(
                f"The required channel for this custom command ('#{channel_name}') was not found. "
                "Please contact a server administrator to fix this."
            )
        if snapshot.channel.id != channel.id:
            raise PermissionDenied(f"This custom command can only be used in <#{channel.id}>.")
        return

    role = snapshot.server.find_role(requirement)
    if role is None:
        raise ConfigurationError(
            f"The required role for this custom command ('{requirement}') was not found. "
            "Please contact a server administrator to fix this."
        )
    if role.id not in snapshot.user.role_ids:
        raise PermissionDenied("You do not have the required role to use this command.")


def enforce_not(requirement: str, snapshot: InvocationSnapshot) -> None:
    """Raise when the invoker matches ``requirement``.

    A channel or role the guild does not have can never match, so it passes.
    """
    requirement = _clean(requirement, "not")
    if requirement == SERVER_MOD:
        if snapshot.user.manage_guild:
            raise PermissionDenied("Server moderators cannot use this command.")
        return

    if requirement.startswith("#"):
        channel = snapshot.server.find_text_channel(requirement[1:])
        if channel is None:
            logger.debug("Excluded channel %s does not exist; gate passes", requirement)
            return
        if snapshot.channel.id == channel.id:
            raise PermissionDenied(f"This custom command cannot be used in <#{channel.id}>.")
        return

    role = snapshot.server.find_role(requirement)
    if role is None:
        logger.debug("Excluded role %s does not exist; gate passes", requirement)
        return
    if role.id in snapshot.user.role_ids:
        raise PermissionDenied("You have a role that is not allowed to use this command.")


def _clean(requirement: str, keyword: str) -> str:
    cleaned = requirement.strip()
    if not cleaned:
        raise InstructionError(f"{{{keyword}}} needs a role, #channel or serverMod.")
    return cleaned


__all__ = ["SERVER_MOD", "enforce_not", "enforce_require"]
