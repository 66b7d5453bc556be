"""Shared builders for snapshots, fake transports and fake discord objects."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Iterable, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock

from ccbot.environment import (
    ChannelInfo,
    ClientInfo,
    InvocationSnapshot,
    RoleInfo,
    ServerInfo,
    StickerInfo,
    UserInfo,
)
from ccbot.web import HttpResponse

ROLES = (
    RoleInfo(id=1, name="Member", position=1),
    RoleInfo(id=2, name="Moderator", position=2, hoist=True),
    RoleInfo(id=3, name="Muted", position=3),
)
CHANNELS = (
    ChannelInfo(id=10, name="general"),
    ChannelInfo(id=11, name="bot-commands"),
    ChannelInfo(id=12, name="Lounge", type="voice"),
)
STICKERS = (
    StickerInfo(id=100, name="wave"),
    StickerInfo(id=101, name="party"),
    StickerInfo(id=102, name="cat"),
    StickerInfo(id=103, name="dog"),
)


def make_snapshot(
    *,
    args: Sequence[str] = (),
    roles: Iterable[str] = ("Member",),
    manage_guild: bool = False,
    channel: str = "general",
    uptime_seconds: float = 0.0,
) -> InvocationSnapshot:
    names = tuple(roles)
    role_ids = frozenset(role.id for role in ROLES if role.name in names)
    user = UserInfo(
        id=42,
        username="alice",
        tag="alice",
        display_name="Alice",
        roles=names,
        role_ids=role_ids,
        manage_guild=manage_guild,
    )
    server = ServerInfo(
        id=500,
        name="Test Guild",
        member_count=3,
        created_at="2020-01-01T00:00:00+00:00",
        owner_id=7,
        roles=ROLES,
        channels=CHANNELS,
        stickers=STICKERS,
    )
    current = next(item for item in CHANNELS if item.name == channel)
    return InvocationSnapshot(
        args=tuple(args),
        user=user,
        server=server,
        channel=current,
        client=ClientInfo(uptime_seconds=uptime_seconds),
    )


class FakeTransport:
    """Replays scripted responses and records every request."""

    def __init__(self, *responses: HttpResponse):
        self.responses: List[HttpResponse] = list(responses)
        self.calls: List[Tuple[str, str, dict, object]] = []

    async def fetch(self, url, method, headers, body):
        self.calls.append((url, method, dict(headers), body))
        return self.responses.pop(0)


class FirstChoice(random.Random):
    """Always picks the first option."""

    def choice(self, seq):
        return seq[0]


#
# discord.py stand-ins
#
def fake_role(role_id: int, name: str, *, default: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        id=role_id,
        name=name,
        color=SimpleNamespace(value=0x3498DB),
        position=role_id,
        hoist=False,
        managed=False,
        mentionable=True,
        is_default=lambda: default,
    )


class FakeMember(SimpleNamespace):
    def __str__(self) -> str:
        return self.name


class FakeChannel(SimpleNamespace):
    pass


def fake_member(*, manage_guild: bool = False, bot: bool = False, roles: Optional[list] = None) -> FakeMember:
    return FakeMember(
        id=42,
        name="alice",
        display_name="Alice",
        bot=bot,
        roles=roles if roles is not None else [fake_role(500, "@everyone", default=True), fake_role(1, "Member")],
        guild_permissions=SimpleNamespace(manage_guild=manage_guild, administrator=False),
    )


def fake_channel(channel_id: int = 10, name: str = "general") -> FakeChannel:
    return FakeChannel(
        id=channel_id,
        name=name,
        type=SimpleNamespace(name="text"),
        category_id=None,
        send=AsyncMock(),
    )


def fake_guild(channel: Optional[FakeChannel] = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=500,
        name="Test Guild",
        member_count=3,
        created_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
        owner_id=7,
        description=None,
        icon=None,
        banner=None,
        verification_level=SimpleNamespace(name="low"),
        roles=[fake_role(500, "@everyone", default=True), fake_role(1, "Member"), fake_role(2, "Moderator")],
        channels=[channel or fake_channel()],
        scheduled_events=[],
        stickers=[SimpleNamespace(id=100, name="wave", description=None, format=SimpleNamespace(name="png"))],
    )


def fake_message(content: str, *, author: Optional[FakeMember] = None, guild=..., channel=None) -> SimpleNamespace:
    channel = channel or fake_channel()
    return SimpleNamespace(
        id=9001,
        content=content,
        author=author or fake_member(),
        guild=fake_guild(channel) if guild is ... else guild,
        channel=channel,
        reply=AsyncMock(),
    )


def fake_context(message: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(
        message=message,
        author=message.author,
        guild=message.guild,
        channel=message.channel,
        reply=AsyncMock(),
    )
