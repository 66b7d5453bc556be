"""Builds the read-only invocation snapshot from discord.py objects."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import discord

from .environment import (
    ChannelInfo,
    ClientInfo,
    EventInfo,
    InvocationSnapshot,
    RoleInfo,
    ServerInfo,
    StickerInfo,
    UserInfo,
)

logger = logging.getLogger("ccbot.snapshot")


def _isoformat(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _asset_url(asset: Any) -> Optional[str]:
    if asset is None:
        return None
    return str(getattr(asset, "url", asset))


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    name = getattr(value, "name", None)
    return str(name) if name is not None else str(value)


def _is_default_role(role: Any) -> bool:
    checker = getattr(role, "is_default", None)
    return bool(checker()) if callable(checker) else False


def _role_info(role: discord.Role) -> RoleInfo:
    color = getattr(role, "color", 0)
    return RoleInfo(
        id=role.id,
        name=role.name,
        color=int(getattr(color, "value", color) or 0),
        position=int(getattr(role, "position", 0)),
        hoist=bool(getattr(role, "hoist", False)),
        managed=bool(getattr(role, "managed", False)),
        mentionable=bool(getattr(role, "mentionable", False)),
    )


def _channel_info(channel: Any) -> ChannelInfo:
    return ChannelInfo(
        id=channel.id,
        name=str(getattr(channel, "name", "") or ""),
        type=_enum_name(getattr(channel, "type", None)) or "text",
        parent_id=getattr(channel, "category_id", None),
    )


def _event_info(event: Any) -> EventInfo:
    return EventInfo(
        id=event.id,
        name=event.name,
        description=getattr(event, "description", None),
        scheduled_start=_isoformat(getattr(event, "start_time", None)),
        scheduled_end=_isoformat(getattr(event, "end_time", None)),
        status=_enum_name(getattr(event, "status", None)),
        entity_type=_enum_name(getattr(event, "entity_type", None)),
        creator_id=getattr(event, "creator_id", None),
        channel_id=getattr(event, "channel_id", None),
    )


def _sticker_info(sticker: Any) -> StickerInfo:
    return StickerInfo(
        id=sticker.id,
        name=sticker.name,
        description=getattr(sticker, "description", None),
        format_type=_enum_name(getattr(sticker, "format", None)),
        pack_id=getattr(sticker, "pack_id", None),
    )


def build_user(member: Any) -> UserInfo:
    roles = [role for role in getattr(member, "roles", ()) if not _is_default_role(role)]
    permissions = getattr(member, "guild_permissions", None)
    return UserInfo(
        id=member.id,
        username=str(getattr(member, "name", "")),
        tag=str(member),
        display_name=str(getattr(member, "display_name", "") or getattr(member, "name", "")),
        roles=tuple(role.name for role in roles),
        role_ids=frozenset(role.id for role in roles),
        manage_guild=bool(getattr(permissions, "manage_guild", False)),
    )


def build_server(guild: Any) -> ServerInfo:
    return ServerInfo(
        id=guild.id,
        name=guild.name,
        member_count=int(getattr(guild, "member_count", 0) or 0),
        created_at=_isoformat(getattr(guild, "created_at", None)),
        owner_id=getattr(guild, "owner_id", None),
        description=getattr(guild, "description", None),
        icon=_asset_url(getattr(guild, "icon", None)),
        banner=_asset_url(getattr(guild, "banner", None)),
        verification_level=_enum_name(getattr(guild, "verification_level", None)),
        roles=tuple(_role_info(role) for role in getattr(guild, "roles", ()) if not _is_default_role(role)),
        channels=tuple(_channel_info(channel) for channel in getattr(guild, "channels", ())),
        events=tuple(_event_info(event) for event in getattr(guild, "scheduled_events", ())),
        stickers=tuple(_sticker_info(sticker) for sticker in getattr(guild, "stickers", ())),
    )


def build_snapshot(
    message: discord.Message,
    args: Sequence[str],
    *,
    uptime_seconds: float,
) -> InvocationSnapshot:
    """Capture everything a template may read about ``message``."""
    guild = message.guild
    if guild is None:
        raise ValueError("Custom commands can only run inside a server.")
    snapshot = InvocationSnapshot(
        args=tuple(args),
        user=build_user(message.author),
        server=build_server(guild),
        channel=_channel_info(message.channel),
        client=ClientInfo(uptime_seconds=uptime_seconds),
    )
    logger.debug(
        "Snapshot for message %s: guild=%s roles=%s channels=%s args=%s",
        getattr(message, "id", None),
        guild.id,
        len(snapshot.server.roles),
        len(snapshot.server.channels),
        len(snapshot.args),
    )
    return snapshot


__all__ = ["build_server", "build_snapshot", "build_user"]
