"""Custom command template resolution.

``resolve_template`` turns a stored response into a :class:`ResolvedMessage`.
Spans are executed left to right in discovery order. Instruction arguments
that contain further ``{...}`` instructions are resolved on demand, through
the same resolver, right before the argument is used; replacement text is
never scanned again.
"""

from __future__ import annotations

import json
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse

from .blocks import ELSE, FI, IF, match_blocks, resolve_block
from .environment import MISSING, Environment, InvocationSnapshot, render_value
from .errors import (
    ConfigurationError,
    ExternalRequestFailed,
    InstructionError,
    ResolutionLimitExceeded,
)
from .expressions import evaluate_condition
from .models import ParsedInstruction, ResolvedMessage, StickerRef
from .permissions import enforce_not, enforce_require
from .scanner import CLOSE, OPEN, TemplateBuffer, decode_instruction, unescape
from .web import DEFAULT_HEADERS, HttpTransport

logger = logging.getLogger("ccbot.engine")

DEFAULT_MAX_STEPS = 1000
MAX_STICKERS = 3
MAX_NESTED_INSTRUCTIONS = 50
_VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class ExecutionContext:
    """Everything one resolution may read or change. Never shared between invocations."""

    snapshot: InvocationSnapshot
    http: Optional[HttpTransport] = None
    rng: random.Random = field(default_factory=random.Random)
    max_steps: int = DEFAULT_MAX_STEPS
    webrequests_enabled: bool = True
    variables: Dict[str, Any] = field(default_factory=dict)
    followups: List[str] = field(default_factory=list)
    stickers: List[StickerRef] = field(default_factory=list)
    steps: int = 0
    depth: int = 0
    last_instruction: Optional[str] = None

    def __post_init__(self) -> None:
        self.environment = Environment(self.snapshot, self.variables)


Handler = Callable[[ParsedInstruction], Awaitable[str]]


class TemplateResolver:
    def __init__(self, context: ExecutionContext):
        self.context = context
        self._handlers: Dict[str, Handler] = {
            "set": self._set,
            "var": self._var,
            "random": self._random,
            "choose": self._choose,
            "require": self._require,
            "not": self._not,
            "followup": self._followup,
            "webrequest": self._webrequest,
            "sticker": self._sticker,
            ELSE: self._marker,
            FI: self._marker,
        }

    async def resolve(self, text: str) -> ResolvedMessage:
        body = await self.resolve_text(text)
        return ResolvedMessage(
            text=body,
            stickers=list(self.context.stickers),
            followups=list(self.context.followups),
        )

    async def resolve_text(self, text: str) -> str:
        """Resolve every instruction in ``text`` and return the rewritten text."""
        buffer = TemplateBuffer(text)
        blocks = match_blocks(buffer)
        for span in buffer.live_spans():
            instruction = decode_instruction(buffer.span_text(span))
            self._count_step(instruction, buffer)
            if instruction.keyword == IF:
                condition = await self._condition(instruction)
                resolve_block(buffer, blocks[span.index], condition)
                continue
            handler = self._handlers.get(instruction.keyword, self._reference)
            replacement = await handler(instruction)
            buffer.replace_span(span, replacement)
        return buffer.render()

    async def _argument(self, raw: str) -> str:
        if OPEN not in raw:
            return raw
        context = self.context
        if context.depth >= MAX_NESTED_INSTRUCTIONS:
            raise InstructionError(f"Instructions are nested more than {MAX_NESTED_INSTRUCTIONS} levels deep.")
        context.depth += 1
        try:
            return await self.resolve_text(raw)
        finally:
            context.depth -= 1

    def _count_step(self, instruction: ParsedInstruction, buffer: TemplateBuffer) -> None:
        context = self.context
        context.steps += 1
        context.last_instruction = instruction.text
        if context.steps > context.max_steps:
            raise ResolutionLimitExceeded(
                context.max_steps,
                buffer=buffer.text,
                variables=context.variables,
                last_instruction=instruction.text,
            )
        logger.debug("Step %s: %s", context.steps, instruction.text)

    async def _condition(self, instruction: ParsedInstruction) -> bool:
        condition = await self._argument(instruction.rest(0))
        result = evaluate_condition(condition, self.context.environment.scope())
        logger.debug("Condition %r -> %s", condition, result)
        return result

    #
    # Instruction handlers
    #
    async def _set(self, instruction: ParsedInstruction) -> str:
        if not instruction.args:
            raise InstructionError("{set} needs a variable name and a value, e.g. {set;name=value}.")
        if len(instruction.args) == 1:
            name, separator, value = instruction.args[0].partition("=")
            if not separator:
                raise InstructionError(
                    f"{instruction.text} is missing a value; use {{set;name=value}} or {{set;name;value}}."
                )
        else:
            name, value = instruction.args[0], instruction.rest(1)
        name = (await self._argument(name)).strip()
        if not _VARIABLE_NAME.match(name):
            raise InstructionError(f"'{name}' is not a valid variable name.")
        self.context.environment.assign(name, await self._argument(value))
        return ""

    async def _var(self, instruction: ParsedInstruction) -> str:
        value = self.context.environment.resolve(await self._argument(instruction.rest(0)))
        return "" if value is MISSING else render_value(value)

    async def _random(self, instruction: ParsedInstruction) -> str:
        if len(instruction.args) < 2:
            raise InstructionError("{random} needs a minimum and a maximum, e.g. {random;1;6}.")
        low = _parse_int(await self._argument(instruction.args[0]), instruction)
        high = _parse_int(await self._argument(instruction.args[1]), instruction)
        if low > high:
            low, high = high, low
        return str(self.context.rng.randint(low, high))

    async def _choose(self, instruction: ParsedInstruction) -> str:
        if not instruction.args:
            return ""
        return await self._argument(self.context.rng.choice(instruction.args))

    async def _require(self, instruction: ParsedInstruction) -> str:
        enforce_require(await self._argument(instruction.rest(0)), self.context.snapshot)
        return ""

    async def _not(self, instruction: ParsedInstruction) -> str:
        enforce_not(await self._argument(instruction.rest(0)), self.context.snapshot)
        return ""

    async def _followup(self, instruction: ParsedInstruction) -> str:
        self.context.followups.append(await self._argument(instruction.rest(0)))
        return ""

    async def _webrequest(self, instruction: ParsedInstruction) -> str:
        context = self.context
        if not context.webrequests_enabled:
            raise InstructionError("Web requests are disabled on this bot.")
        if len(instruction.args) < 2:
            raise InstructionError("{webrequest} needs a variable name and a URL, e.g. {webrequest;data;https://...}.")
        name = (await self._argument(instruction.args[0])).strip()
        if not _VARIABLE_NAME.match(name):
            raise InstructionError(f"'{name}' is not a valid variable name.")
        url = (await self._argument(instruction.args[1])).strip()
        if urlparse(url).scheme not in ("http", "https"):
            raise InstructionError(f"'{url}' is not an http(s) URL.")
        method = "GET"
        if len(instruction.args) > 2 and instruction.args[2].strip():
            method = (await self._argument(instruction.args[2])).strip().upper()
        body = None
        if len(instruction.args) > 3:
            raw_body = unescape(await self._argument(instruction.rest(3)), "{}[]")
            try:
                body = json.loads(raw_body)
            except json.JSONDecodeError as exc:
                raise InstructionError(f"The request body for {url} is not valid JSON: {exc}") from exc
        if context.http is None:
            raise InstructionError("No HTTP client is configured for web requests.")

        logger.debug("Web request %s %s (body=%s) into variable %s", method, url, body is not None, name)
        response = await context.http.fetch(url, method, DEFAULT_HEADERS, body)
        if not response.ok:
            raise ExternalRequestFailed(url, response.status, response.reason)
        try:
            data = json.loads(response.text)
        except json.JSONDecodeError as exc:
            raise ExternalRequestFailed(url, response.status, "response was not valid JSON") from exc
        context.environment.assign(name, data)
        return ""

    async def _sticker(self, instruction: ParsedInstruction) -> str:
        key = (await self._argument(instruction.rest(0))).strip()
        sticker = self.context.snapshot.server.find_sticker(key)
        if sticker is None:
            raise ConfigurationError(
                f"The sticker '{key}' was not found on this server. "
                "Please contact a server administrator to fix this."
            )
        if len(self.context.stickers) >= MAX_STICKERS:
            raise InstructionError(f"A message can carry at most {MAX_STICKERS} stickers.")
        self.context.stickers.append(StickerRef(id=sticker.id, name=sticker.name))
        return ""

    async def _marker(self, instruction: ParsedInstruction) -> str:
        return ""

    async def _reference(self, instruction: ParsedInstruction) -> str:
        path = await self._argument(instruction.body)
        value = self.context.environment.resolve(path)
        if value is MISSING:
            # Most likely literal text in braces; keep the braces around the resolved body.
            logger.debug("No variable %r; keeping it in braces", path)
            return OPEN + path + CLOSE
        return render_value(value)


def _parse_int(raw: str, instruction: ParsedInstruction) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise InstructionError(f"'{raw.strip()}' in {instruction.text} is not a whole number.") from None


async def resolve_template(
    text: str,
    snapshot: InvocationSnapshot,
    *,
    http: Optional[HttpTransport] = None,
    rng: Optional[random.Random] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
    webrequests_enabled: bool = True,
) -> ResolvedMessage:
    """Resolve ``text`` for one invocation.

    Raises a :class:`ccbot.errors.TemplateError` subclass when resolution
    has to stop; nothing produced up to that point is returned.
    """
    context = ExecutionContext(
        snapshot=snapshot,
        http=http,
        rng=rng or random.Random(),
        max_steps=max_steps,
        webrequests_enabled=webrequests_enabled,
    )
    return await TemplateResolver(context).resolve(text)


__all__ = [
    "DEFAULT_MAX_STEPS",
    "ExecutionContext",
    "MAX_NESTED_INSTRUCTIONS",
    "MAX_STICKERS",
    "TemplateResolver",
    "resolve_template",
]
