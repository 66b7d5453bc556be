"""JSON persistence for guild settings and custom commands."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .models import CustomCommand, GuildSettings
from .utils import utc_now

logger = logging.getLogger("ccbot.store")


class CommandStoreError(Exception):
    """Raised when a management operation cannot be applied."""


def serialize_command(command: CustomCommand) -> Dict[str, object]:
    return {
        "id": command.id,
        "guild_id": command.guild_id,
        "name": command.name,
        "response": command.response,
        "created_by": command.created_by,
        "created_at": command.created_at.isoformat() if command.created_at else None,
        "updated_at": command.updated_at.isoformat() if command.updated_at else None,
    }


def deserialize_command(payload: Dict[str, object]) -> CustomCommand:
    created_at = payload.get("created_at")
    updated_at = payload.get("updated_at")
    created_by = payload.get("created_by")
    return CustomCommand(
        id=str(payload["id"]),
        guild_id=int(payload["guild_id"]),
        name=str(payload["name"]).lower(),
        response=str(payload.get("response", "")),
        created_by=int(created_by) if created_by is not None else None,
        created_at=datetime.fromisoformat(str(created_at)) if created_at else None,
        updated_at=datetime.fromisoformat(str(updated_at)) if updated_at else None,
    )


class CommandStore:
    """Custom commands and per-guild settings backed by a single JSON file."""

    def __init__(self, path: Path):
        self.path = path
        self.commands: Dict[str, CustomCommand] = {}
        self.settings: Dict[int, GuildSettings] = {}
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse command store %s: %s", self.path, exc)
            return
        for entry in payload.get("commands", []):
            if not isinstance(entry, dict):
                continue
            try:
                command = deserialize_command(entry)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed custom command entry %s: %s", entry.get("id"), exc)
                continue
            self.commands[command.id] = command
        guilds = payload.get("guilds", {})
        if isinstance(guilds, dict):
            for key, entry in guilds.items():
                if not isinstance(entry, dict):
                    continue
                try:
                    guild_id = int(key)
                except ValueError:
                    logger.warning("Skipping guild settings with malformed id %r", key)
                    continue
                prefix = str(entry.get("prefix") or "").strip() or None
                self.settings[guild_id] = GuildSettings(guild_id=guild_id, prefix=prefix)
        logger.info("Loaded %s custom command(s) from %s", len(self.commands), self.path)

    async def _save(self) -> None:
        async with self._lock:
            data = {
                "commands": [serialize_command(command) for command in self.commands.values()],
                "guilds": {
                    str(guild_id): {"prefix": settings.prefix}
                    for guild_id, settings in self.settings.items()
                },
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    #
    # Queries
    #
    def find(self, guild_id: int, name: str) -> Optional[CustomCommand]:
        lowered = name.strip().lower()
        for command in self.commands.values():
            if command.guild_id == guild_id and command.name == lowered:
                return command
        return None

    def find_by_identifier(self, guild_id: int, identifier: str) -> Optional[CustomCommand]:
        """Look a command up by id first, then by name."""
        command = self.commands.get(identifier.strip())
        if command is not None and command.guild_id == guild_id:
            return command
        return self.find(guild_id, identifier)

    def list_commands(self, guild_id: int) -> List[CustomCommand]:
        return sorted(
            (command for command in self.commands.values() if command.guild_id == guild_id),
            key=lambda command: command.name,
        )

    def prefix_for(self, guild_id: Optional[int], default: str) -> str:
        if guild_id is None:
            return default
        settings = self.settings.get(guild_id)
        if settings is None or not settings.prefix:
            return default
        return settings.prefix

    #
    # Mutations
    #
    async def add(self, guild_id: int, name: str, response: str, *, created_by: Optional[int] = None) -> CustomCommand:
        lowered = name.strip().lower()
        if not lowered or any(char.isspace() for char in lowered):
            raise CommandStoreError("Command names must be a single word.")
        if not response.strip():
            raise CommandStoreError("The command response cannot be empty.")
        if self.find(guild_id, lowered) is not None:
            raise CommandStoreError(f"A custom command named `{lowered}` already exists.")
        now = utc_now()
        command = CustomCommand(
            id=uuid.uuid4().hex,
            guild_id=guild_id,
            name=lowered,
            response=response,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.commands[command.id] = command
        await self._save()
        logger.info("Added custom command %s (%s) in guild %s", command.name, command.id, guild_id)
        return command

    async def edit(self, guild_id: int, identifier: str, response: str) -> CustomCommand:
        command = self.find_by_identifier(guild_id, identifier)
        if command is None:
            raise CommandStoreError(f"No custom command matches `{identifier}`.")
        if not response.strip():
            raise CommandStoreError("The command response cannot be empty.")
        command.response = response
        command.updated_at = utc_now()
        await self._save()
        logger.info("Edited custom command %s (%s) in guild %s", command.name, command.id, guild_id)
        return command

    async def remove(self, guild_id: int, identifier: str) -> CustomCommand:
        command = self.find_by_identifier(guild_id, identifier)
        if command is None:
            raise CommandStoreError(f"No custom command matches `{identifier}`.")
        del self.commands[command.id]
        await self._save()
        logger.info("Removed custom command %s (%s) in guild %s", command.name, command.id, guild_id)
        return command

    async def set_prefix(self, guild_id: int, prefix: str) -> GuildSettings:
        cleaned = prefix.strip()
        if not cleaned or any(char.isspace() for char in cleaned):
            raise CommandStoreError("The prefix must be non-empty and contain no spaces.")
        settings = self.settings.setdefault(guild_id, GuildSettings(guild_id=guild_id))
        settings.prefix = cleaned
        await self._save()
        logger.info("Prefix for guild %s set to %s", guild_id, cleaned)
        return settings


__all__ = ["CommandStore", "CommandStoreError", "deserialize_command", "serialize_command"]
