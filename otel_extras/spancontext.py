"""Span contexts and the immutable context object that carries them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

__all__ = [
    "INVALID_TRACE_ID",
    "INVALID_SPAN_ID",
    "TRACE_FLAGS_DEFAULT",
    "TRACE_FLAGS_SAMPLED",
    "trace_id_from_hex",
    "span_id_from_hex",
    "SpanContext",
    "INVALID_SPAN_CONTEXT",
    "Context",
]

INVALID_TRACE_ID = 0
INVALID_SPAN_ID = 0
TRACE_FLAGS_DEFAULT = 0x00
TRACE_FLAGS_SAMPLED = 0x01

_TRACE_ID_BITS = 128
_SPAN_ID_BITS = 64
_HEX = re.compile(r"\+?[0-9a-fA-F]+")


def _parse_hex(value: str, bits: int, what: str) -> int:
    if not isinstance(value, str) or not _HEX.fullmatch(value):
        raise ValueError(f"invalid {what}: {value!r}")
    number = int(value.lstrip("+"), 16)
    if number >> bits:
        raise ValueError(f"{what} out of range: {value!r}")
    return number


def trace_id_from_hex(value: str) -> int:
    """Parse a hexadecimal trace id into a 128-bit integer.

    Raises ``ValueError`` if the text is not hexadecimal or does not fit.
    """
    return _parse_hex(value, _TRACE_ID_BITS, "trace id")


def span_id_from_hex(value: str) -> int:
    """Parse a hexadecimal span id into a 64-bit integer.

    Raises ``ValueError`` if the text is not hexadecimal or does not fit.
    """
    return _parse_hex(value, _SPAN_ID_BITS, "span id")


@dataclass(frozen=True)
class SpanContext:
    """The identifying part of a span that crosses process boundaries."""

    trace_id: int = INVALID_TRACE_ID
    span_id: int = INVALID_SPAN_ID
    trace_flags: int = TRACE_FLAGS_DEFAULT
    is_remote: bool = False
    trace_state: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not 0 <= self.trace_id < 1 << _TRACE_ID_BITS:
            raise ValueError(f"trace id out of range: {self.trace_id}")
        if not 0 <= self.span_id < 1 << _SPAN_ID_BITS:
            raise ValueError(f"span id out of range: {self.span_id}")
        if not 0 <= self.trace_flags <= 0xFF:
            raise ValueError(f"trace flags out of range: {self.trace_flags}")

    def is_valid(self) -> bool:
        """True when both the trace id and the span id are non-zero."""
        return self.trace_id != INVALID_TRACE_ID and self.span_id != INVALID_SPAN_ID

    def is_sampled(self) -> bool:
        """True when the sampled bit of the trace flags is set."""
        return bool(self.trace_flags & TRACE_FLAGS_SAMPLED)

    def trace_id_hex(self) -> str:
        """The trace id as 32 lower-case hexadecimal digits."""
        return f"{self.trace_id:032x}"

    def span_id_hex(self) -> str:
        """The span id as 16 lower-case hexadecimal digits."""
        return f"{self.span_id:016x}"


INVALID_SPAN_CONTEXT = SpanContext()


@dataclass(frozen=True)
class Context:
    """An immutable execution context holding the active span context."""

    span_context: SpanContext = field(default=INVALID_SPAN_CONTEXT)

    def with_remote_span_context(self, span_context: SpanContext) -> Context:
        """Return a copy of this context whose span context is ``span_context``, marked remote."""
        return replace(self, span_context=replace(span_context, is_remote=True))