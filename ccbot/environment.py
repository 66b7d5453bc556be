"""Variable environment exposed to custom command templates.

Templates see a fixed set of namespaces (``args``, ``user``, ``server``,
``channel``, ``client``) built from an :class:`InvocationSnapshot`, followed
by the variables the template itself assigns. Each namespace is a frozen
record that only exports the fields listed in its ``FIELDS`` table, so
nothing else about the invocation leaks into templates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Mapping, MutableMapping, Optional, Sequence, Tuple

from .expressions import (
    MISSING,
    CallStep,
    EvalError,
    Evaluator,
    FieldStep,
    IndexStep,
    JoinFromStep,
    Node,
    Path,
    as_number,
    parse_path,
)
from .utils import format_uptime

logger = logging.getLogger("ccbot.environment")


class Record:
    """Base for namespace records; ``FIELDS`` maps template names to attributes."""

    FIELDS: ClassVar[Mapping[str, str]] = {}
    METHODS: ClassVar[Mapping[str, str]] = {}

    def get_field(self, name: str) -> Any:
        attribute = self.FIELDS.get(name)
        if attribute is None:
            return MISSING
        return getattr(self, attribute)

    def call(self, name: str, args: Sequence[Any]) -> Any:
        attribute = self.METHODS.get(name)
        if attribute is None:
            return MISSING
        try:
            return getattr(self, attribute)(*args)
        except TypeError:
            return MISSING

    def to_json(self) -> Dict[str, Any]:
        return {name: to_plain(getattr(self, attribute)) for name, attribute in self.FIELDS.items()}


@dataclass(frozen=True)
class RoleInfo(Record):
    id: int
    name: str
    color: int = 0
    position: int = 0
    hoist: bool = False
    managed: bool = False
    mentionable: bool = False

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "name": "name",
        "color": "color",
        "position": "position",
        "hoist": "hoist",
        "managed": "managed",
        "mentionable": "mentionable",
    }


@dataclass(frozen=True)
class ChannelInfo(Record):
    id: int
    name: str
    type: str = "text"
    parent_id: Optional[int] = None

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "name": "name",
        "type": "type",
        "parentId": "parent_id",
    }


@dataclass(frozen=True)
class EventInfo(Record):
    id: int
    name: str
    description: Optional[str] = None
    scheduled_start: Optional[str] = None
    scheduled_end: Optional[str] = None
    status: Optional[str] = None
    entity_type: Optional[str] = None
    creator_id: Optional[int] = None
    channel_id: Optional[int] = None

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "name": "name",
        "description": "description",
        "scheduledStart": "scheduled_start",
        "scheduledEnd": "scheduled_end",
        "status": "status",
        "entityType": "entity_type",
        "creatorId": "creator_id",
        "channelId": "channel_id",
    }


@dataclass(frozen=True)
class StickerInfo(Record):
    id: int
    name: str
    description: Optional[str] = None
    format_type: Optional[str] = None
    pack_id: Optional[int] = None

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "name": "name",
        "description": "description",
        "formatType": "format_type",
        "packId": "pack_id",
    }


@dataclass(frozen=True)
class UserInfo(Record):
    id: int
    username: str
    tag: str = ""
    display_name: str = ""
    roles: Tuple[str, ...] = ()
    role_ids: FrozenSet[int] = frozenset()
    manage_guild: bool = False

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "username": "username",
        "tag": "tag",
        "displayName": "display_name",
        "mention": "mention",
        "roles": "roles",
    }
    METHODS: ClassVar[Mapping[str, str]] = {"hasRole": "has_role"}

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    def has_role(self, name: Any) -> bool:
        return str(name) in self.roles


@dataclass(frozen=True)
class ServerInfo(Record):
    id: int
    name: str
    member_count: int = 0
    created_at: Optional[str] = None
    owner_id: Optional[int] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    banner: Optional[str] = None
    verification_level: Optional[str] = None
    roles: Tuple[RoleInfo, ...] = ()
    channels: Tuple[ChannelInfo, ...] = ()
    events: Tuple[EventInfo, ...] = ()
    stickers: Tuple[StickerInfo, ...] = ()

    FIELDS: ClassVar[Mapping[str, str]] = {
        "id": "id",
        "name": "name",
        "memberCount": "member_count",
        "createdAt": "created_at",
        "ownerId": "owner_id",
        "description": "description",
        "icon": "icon",
        "banner": "banner",
        "verificationLevel": "verification_level",
        "roles": "roles",
        "channels": "channels",
        "events": "events",
        "stickers": "stickers",
    }

    def find_role(self, name: str) -> Optional[RoleInfo]:
        return next((role for role in self.roles if role.name == name), None)

    def find_text_channel(self, name: str) -> Optional[ChannelInfo]:
        return next(
            (channel for channel in self.channels if channel.name == name and channel.type == "text"),
            None,
        )

    def find_sticker(self, key: str) -> Optional[StickerInfo]:
        for sticker in self.stickers:
            if sticker.name == key or str(sticker.id) == key:
                return sticker
        return None


@dataclass(frozen=True)
class ClientInfo(Record):
    uptime_seconds: float = 0.0

    FIELDS: ClassVar[Mapping[str, str]] = {"uptime": "uptime"}

    @property
    def uptime(self) -> str:
        return format_uptime(self.uptime_seconds)


@dataclass(frozen=True)
class InvocationSnapshot:
    """Read-only facts about one trigger event."""

    args: Tuple[str, ...]
    user: UserInfo
    server: ServerInfo
    channel: ChannelInfo
    client: ClientInfo = field(default_factory=ClientInfo)


def to_plain(value: Any) -> Any:
    """Convert records and tuples into JSON-compatible structures."""
    if isinstance(value, Record):
        return value.to_json()
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, frozenset, set)):
        return [to_plain(item) for item in value]
    return value


def render_value(value: Any) -> str:
    """String form of a resolved value as it appears in the output text."""
    if value is None or value is MISSING:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_render_item(item) for item in value)
    if isinstance(value, (Record, Mapping)):
        return json.dumps(to_plain(value), ensure_ascii=False)
    return _render_scalar(value)


def _render_item(value: Any) -> str:
    if isinstance(value, (Record, Mapping, list, tuple)):
        return json.dumps(to_plain(value), ensure_ascii=False)
    return _render_scalar(value)


def _render_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


_LIST_METHODS = ("join", "includes")
_STRING_METHODS = ("includes", "startsWith", "endsWith", "toLowerCase", "toUpperCase", "trim")


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Record):
        return value.get_field(name)
    if isinstance(value, Mapping):
        return value.get(name, MISSING)
    if isinstance(value, (list, tuple, str)) and name == "length":
        return len(value)
    return MISSING


def _index(value: Any, key: Any) -> Any:
    if isinstance(value, (list, tuple)):
        number = as_number(key)
        if not isinstance(number, int):
            return _field(value, key) if isinstance(key, str) else MISSING
        if 0 <= number < len(value):
            return value[number]
        return None
    if isinstance(value, Mapping):
        return value.get(key if isinstance(key, str) else _render_scalar(key), MISSING)
    if isinstance(value, Record) and isinstance(key, str):
        return value.get_field(key)
    return MISSING


def _call(value: Any, name: str, args: Sequence[Any]) -> Any:
    if isinstance(value, Record):
        return value.call(name, args)
    if isinstance(value, (list, tuple)) and name in _LIST_METHODS:
        if name == "join":
            if len(args) > 1:
                return MISSING
            separator = _render_scalar(args[0]) if args else ","
            return separator.join(_render_item(item) for item in value)
        if len(args) != 1:
            return MISSING
        needle = _render_scalar(args[0])
        return any(_render_item(item) == needle for item in value)
    if isinstance(value, str) and name in _STRING_METHODS:
        if name in ("toLowerCase", "toUpperCase", "trim"):
            if args:
                return MISSING
            if name == "trim":
                return value.strip()
            return value.lower() if name == "toLowerCase" else value.upper()
        if len(args) != 1:
            return MISSING
        needle = _render_scalar(args[0])
        if name == "includes":
            return needle in value
        if name == "startsWith":
            return value.startswith(needle)
        return value.endswith(needle)
    return MISSING


class Scope:
    """Read-only lookup table handed to path resolution and conditions."""

    def __init__(self, roots: Mapping[str, Any], variables: Mapping[str, Any]):
        self._roots = roots
        self._variables = variables

    def lookup(self, path: Path, evaluate: Callable[[Node], Any]) -> Any:
        value = self._roots.get(path.root, MISSING)
        if value is MISSING:
            value = self._variables.get(path.root, MISSING)
        for step in path.steps:
            if value is MISSING or value is None:
                return MISSING
            if isinstance(step, FieldStep):
                value = _field(value, step.name)
            elif isinstance(step, IndexStep):
                value = _index(value, evaluate(step.key))
            elif isinstance(step, JoinFromStep):
                if not isinstance(value, (list, tuple)):
                    return MISSING
                value = " ".join(_render_item(item) for item in value[step.start :])
            elif isinstance(step, CallStep):
                value = _call(value, step.name, [evaluate(arg) for arg in step.args])
        return value

    def resolve(self, text: str) -> Any:
        """Resolve a dotted path, returning ``MISSING`` instead of raising."""
        try:
            path = parse_path(text)
            return self.lookup(path, Evaluator(self).evaluate)
        except EvalError as exc:
            logger.debug("Path %r did not resolve: %s", text, exc)
            return MISSING


class Environment:
    """Per-invocation variables layered over the invocation snapshot."""

    def __init__(self, snapshot: InvocationSnapshot, variables: Optional[MutableMapping[str, Any]] = None):
        self.snapshot = snapshot
        self.variables: MutableMapping[str, Any] = variables if variables is not None else {}
        self._roots = MappingProxyType(
            {
                "args": snapshot.args,
                "user": snapshot.user,
                "server": snapshot.server,
                "channel": snapshot.channel,
                "client": snapshot.client,
            }
        )

    def scope(self) -> Scope:
        """Fresh read-only view; later assignments do not leak into it."""
        return Scope(self._roots, MappingProxyType(dict(self.variables)))

    def resolve(self, text: str) -> Any:
        return self.scope().resolve(text)

    def assign(self, name: str, value: Any) -> None:
        logger.debug("Variable %s assigned", name)
        self.variables[name] = value


__all__ = [
    "ChannelInfo",
    "ClientInfo",
    "Environment",
    "EventInfo",
    "InvocationSnapshot",
    "Record",
    "RoleInfo",
    "Scope",
    "ServerInfo",
    "StickerInfo",
    "UserInfo",
    "render_value",
    "to_plain",
]
