"""Dataclasses and shared type definitions for ccbot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class CustomCommand:
    id: str
    guild_id: int
    name: str
    response: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class GuildSettings:
    guild_id: int
    prefix: Optional[str] = None


@dataclass(frozen=True)
class StickerRef:
    id: int
    name: str


@dataclass(frozen=True)
class ParsedInstruction:
    """One decoded ``{keyword;arg;...}`` instruction.

    ``args`` are raw and may still contain nested instructions.
    """

    keyword: str
    args: Tuple[str, ...]
    text: str

    @property
    def body(self) -> str:
        """Inner text without the surrounding braces."""
        return self.text[1:-1]

    def rest(self, index: int) -> str:
        """Arguments from ``index`` onwards, joined back with semicolons."""
        return ";".join(self.args[index:])


@dataclass
class ResolvedMessage:
    text: str
    stickers: List[StickerRef] = field(default_factory=list)
    followups: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.stickers

    @property
    def deliverable_followups(self) -> List[str]:
        """Follow-ups in queue order, trimmed, with blank ones skipped."""
        return [item.strip() for item in self.followups if item.strip()]


__all__ = [
    "CustomCommand",
    "GuildSettings",
    "ParsedInstruction",
    "ResolvedMessage",
    "StickerRef",
]
