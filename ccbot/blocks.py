"""Matching and stripping of ``{if}``/``{else}``/``{fi}`` regions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import ParseError
from .scanner import InstructionSpan, TemplateBuffer, decode_instruction

logger = logging.getLogger("ccbot.blocks")

IF = "if"
ELSE = "else"
FI = "fi"
BLOCK_KEYWORDS = frozenset({IF, ELSE, FI})


@dataclass
class Block:
    if_span: InstructionSpan
    fi_span: InstructionSpan
    else_span: Optional[InstructionSpan] = None


def match_blocks(buffer: TemplateBuffer) -> Dict[int, Block]:
    """Pair every ``if`` with its ``else`` and ``fi``, keyed by the ``if`` span index.

    Only spans sharing the same enclosing span can pair up. Nested ``if``
    regions are skipped over while looking for a match, so the first
    ``else``/``fi`` seen at the opening depth belongs to the opening ``if``.
    """
    siblings: Dict[Optional[int], List[Tuple[InstructionSpan, str]]] = {}
    for span in buffer.live_spans():
        keyword = decode_instruction(buffer.span_text(span)).keyword
        if keyword in BLOCK_KEYWORDS:
            siblings.setdefault(span.parent, []).append((span, keyword))

    blocks: Dict[int, Block] = {}
    for group in siblings.values():
        pending: List[List[Optional[InstructionSpan]]] = []
        for span, keyword in group:
            if keyword == IF:
                pending.append([span, None])
            elif keyword == ELSE:
                if not pending:
                    raise _structure_error(buffer, span, "{else} without a matching {if}")
                if pending[-1][1] is not None:
                    raise _structure_error(buffer, span, "Only one {else} is allowed per {if}")
                pending[-1][1] = span
            else:
                if not pending:
                    raise _structure_error(buffer, span, "{fi} without a matching {if}")
                if_span, else_span = pending.pop()
                blocks[if_span.index] = Block(if_span=if_span, fi_span=span, else_span=else_span)
        if pending:
            dangling = pending[-1][0]
            raise _structure_error(buffer, dangling, "Missing {fi} for this {if}")
    return blocks


def resolve_block(buffer: TemplateBuffer, block: Block, condition: bool) -> None:
    """Delete the untaken branch of ``block`` along with its markers."""
    if_span, else_span, fi_span = block.if_span, block.else_span, block.fi_span
    if condition:
        if else_span is not None:
            buffer.delete_slots(else_span.first_slot, fi_span.last_slot)
        else:
            buffer.delete_slots(fi_span.first_slot, fi_span.last_slot)
        buffer.delete_slots(if_span.first_slot, if_span.last_slot)
    elif else_span is not None:
        buffer.delete_slots(fi_span.first_slot, fi_span.last_slot)
        buffer.delete_slots(if_span.first_slot, else_span.last_slot)
    else:
        buffer.delete_slots(if_span.first_slot, fi_span.last_slot)
    logger.debug(
        "Resolved block at span %s (%s, else=%s)",
        if_span.index,
        "then" if condition else "else",
        else_span is not None,
    )


def _structure_error(buffer: TemplateBuffer, span: InstructionSpan, reason: str) -> ParseError:
    return ParseError(
        f"{reason}: {buffer.span_text(span)} at position {buffer.start(span)}",
        user_message=f"{reason}: `{buffer.span_text(span)}`",
    )


__all__ = ["BLOCK_KEYWORDS", "Block", "match_blocks", "resolve_block"]
