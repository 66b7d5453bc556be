"""Brace span scanning, instruction decoding and the template segment arena.

A template is cut at every ``{``/``}`` boundary into immutable text slots.
Spans address slot ranges rather than raw character offsets, so replacing
one span never invalidates the position of another: character offsets are
always recomputed from a prefix sum over the current slot lengths.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import accumulate
from typing import Iterator, List, Optional, Set

from .errors import ParseError
from .models import ParsedInstruction

logger = logging.getLogger("ccbot.scanner")

ESCAPE = "\\"
OPEN = "{"
CLOSE = "}"


@dataclass
class ScannedSpan:
    start: int
    end: int
    parent: Optional[int]
    depth: int


@dataclass
class InstructionSpan:
    index: int
    first_slot: int
    last_slot: int
    parent: Optional[int]
    depth: int
    void: bool = False


def scan_spans(text: str) -> List[ScannedSpan]:
    """Return every balanced ``{...}`` pair in ``text`` ordered by start offset.

    Nested pairs are reported as separate spans with ``parent`` pointing at
    the index of the enclosing span. A character following ``ESCAPE`` is
    never treated as a boundary.
    """
    spans: List[ScannedSpan] = []
    opened: List[int] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == ESCAPE:
            index += 2
            continue
        if char == OPEN:
            parent = opened[-1] if opened else None
            spans.append(ScannedSpan(start=index, end=-1, parent=parent, depth=len(opened)))
            opened.append(len(spans) - 1)
        elif char == CLOSE:
            if not opened:
                raise ParseError(
                    f"Unbalanced braces in custom command response (unexpected '}}' at position {index})",
                    user_message="Unbalanced braces in custom command response.",
                )
            spans[opened.pop()].end = index + 1
        index += 1
    if opened:
        position = spans[opened[-1]].start
        raise ParseError(
            f"Unbalanced braces in custom command response (unclosed '{{' at position {position})",
            user_message="Unbalanced braces in custom command response.",
        )
    return spans


def split_arguments(body: str) -> List[str]:
    """Split instruction text on semicolons that are not nested or escaped."""
    parts: List[str] = []
    depth = 0
    start = 0
    index = 0
    while index < len(body):
        char = body[index]
        if char == ESCAPE:
            index += 2
            continue
        if char == OPEN:
            depth += 1
        elif char == CLOSE:
            depth -= 1
        elif char == ";" and depth == 0:
            parts.append(body[start:index])
            start = index + 1
        index += 1
    parts.append(body[start:])
    return parts


def decode_instruction(text: str) -> ParsedInstruction:
    """Decode ``{keyword;arg;...}`` into keyword and raw arguments."""
    parts = split_arguments(text[1:-1])
    return ParsedInstruction(keyword=parts[0].strip(), args=tuple(parts[1:]), text=text)


def unescape(text: str, characters: str = OPEN + CLOSE) -> str:
    """Drop the escape character in front of any of ``characters``."""
    if ESCAPE not in text:
        return text
    out: List[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == ESCAPE and index + 1 < len(text):
            following = text[index + 1]
            if following in characters:
                out.append(following)
            else:
                out.append(char + following)
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


class TemplateBuffer:
    """Mutable view over a template built from immutable text slots."""

    def __init__(self, text: str):
        scanned = scan_spans(text)
        cuts = sorted({0, len(text), *(s.start for s in scanned), *(s.end for s in scanned)})
        slot_at = {cut: position for position, cut in enumerate(cuts)}
        self._slots: List[str] = [text[a:b] for a, b in zip(cuts, cuts[1:])]
        self._prefix: Optional[List[int]] = None
        self._written: Set[int] = set()
        self.spans: List[InstructionSpan] = [
            InstructionSpan(
                index=position,
                first_slot=slot_at[span.start],
                last_slot=slot_at[span.end] - 1,
                parent=span.parent,
                depth=span.depth,
            )
            for position, span in enumerate(scanned)
        ]

    @property
    def text(self) -> str:
        return "".join(self._slots)

    def render(self) -> str:
        """Join the slots, unescaping only text that came from the template itself."""
        return "".join(
            slot if position in self._written else unescape(slot)
            for position, slot in enumerate(self._slots)
        )

    def __len__(self) -> int:
        return self.offsets()[-1]

    def offsets(self) -> List[int]:
        """Prefix sum of slot lengths; ``offsets()[i]`` is where slot ``i`` begins."""
        if self._prefix is None:
            self._prefix = [0, *accumulate(len(slot) for slot in self._slots)]
        return self._prefix

    def start(self, span: InstructionSpan) -> int:
        return self.offsets()[span.first_slot]

    def end(self, span: InstructionSpan) -> int:
        return self.offsets()[span.last_slot + 1]

    def span_text(self, span: InstructionSpan) -> str:
        return "".join(self._slots[span.first_slot : span.last_slot + 1])

    def live_spans(self) -> Iterator[InstructionSpan]:
        """Yield spans in discovery order, skipping any voided along the way."""
        for span in self.spans:
            if not span.void:
                yield span

    def replace_span(self, span: InstructionSpan, replacement: str) -> int:
        """Swap a span's text for ``replacement`` and return the length delta."""
        before = self.end(span) - self.start(span)
        self._write(span.first_slot, span.last_slot, replacement)
        return len(replacement) - before

    def delete_slots(self, first_slot: int, last_slot: int) -> int:
        """Remove every slot in the inclusive range and return the removed length."""
        offsets = self.offsets()
        removed = offsets[last_slot + 1] - offsets[first_slot]
        self._write(first_slot, last_slot, "")
        return removed

    def _write(self, first_slot: int, last_slot: int, replacement: str) -> None:
        self._slots[first_slot] = replacement
        for position in range(first_slot + 1, last_slot + 1):
            self._slots[position] = ""
        self._written.update(range(first_slot, last_slot + 1))
        for span in self.spans:
            if not span.void and span.first_slot >= first_slot and span.last_slot <= last_slot:
                span.void = True
        self._prefix = None
        logger.debug("Rewrote slots %s..%s with %d chars", first_slot, last_slot, len(replacement))


__all__ = [
    "CLOSE",
    "ESCAPE",
    "InstructionSpan",
    "OPEN",
    "ScannedSpan",
    "TemplateBuffer",
    "decode_instruction",
    "scan_spans",
    "split_arguments",
    "unescape",
]
