"""Propagation of span context in the Google Cloud Trace header format."""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping

from otel_extras.spancontext import (
    Context,
    SpanContext,
    trace_id_from_hex,
)

__all__ = ["CLOUD_TRACE_CONTEXT_HEADER", "GoogleTraceContextPropagator"]

CLOUD_TRACE_CONTEXT_HEADER = "X-Cloud-Trace-Context"

_DECIMAL = re.compile(r"\+?[0-9]+")
_U64_MAX = (1 << 64) - 1
_U8_MAX = 0xFF


def _parse_unsigned(text: str, maximum: int, what: str) -> int:
    if not _DECIMAL.fullmatch(text):
        raise ValueError(f"invalid {what}: {text!r}")
    number = int(text.lstrip("+"))
    if number > maximum:
        raise ValueError(f"{what} out of range: {text!r}")
    return number


def _get_header(carrier: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    if lowered in carrier:
        return carrier[lowered]
    return next(
        (value for key, value in carrier.items() if key.lower() == lowered),
        None,
    )


class GoogleTraceContextPropagator:
    """Reads and writes span context using the ``X-Cloud-Trace-Context`` header.

    The header has the form ``TRACE_ID/SPAN_ID;o=FLAGS`` where the trace id is
    32 hexadecimal digits, the span id is a decimal 64-bit number and the
    optional flags are a decimal byte (sampled when absent).
    """

    def __repr__(self) -> str:
        return "GoogleTraceContextPropagator()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GoogleTraceContextPropagator)

    def __hash__(self) -> int:
        return hash(GoogleTraceContextPropagator)

    def extract_span_context(self, carrier: Mapping[str, str]) -> SpanContext:
        """Parse the header from ``carrier``; raise ``ValueError`` if absent or malformed."""
        raw = _get_header(carrier, CLOUD_TRACE_CONTEXT_HEADER)
        if raw is None:
            raise ValueError(f"missing {CLOUD_TRACE_CONTEXT_HEADER} header")
        header_value = raw.strip()

        trace_part, slash, rest = header_value.partition("/")
        if not slash or len(trace_part) != 32:
            raise ValueError(f"malformed trace context header: {header_value!r}")

        span_part, marker, flags_part = rest.partition(";o=")
        if not marker:
            flags_part = "1"

        span_context = SpanContext(
            trace_id=trace_id_from_hex(trace_part),
            span_id=_parse_unsigned(span_part, _U64_MAX, "span id"),
            trace_flags=_parse_unsigned(flags_part, _U8_MAX, "trace flags"),
            is_remote=True,
        )
        if not span_context.is_valid():
            raise ValueError(f"invalid span context in header: {header_value!r}")
        return span_context

    def inject(self, context: Context, carrier: MutableMapping[str, str]) -> None:
        """Write the header for the span context of ``context`` into ``carrier``.

        Nothing is written when the span context is not valid.
        """
        span_context = context.span_context
        if span_context.is_valid():
            carrier[CLOUD_TRACE_CONTEXT_HEADER.lower()] = (
                f"{span_context.trace_id:032x}/{span_context.span_id}"
                f";o={span_context.trace_flags}"
            )

    def extract(
        self, carrier: Mapping[str, str], context: Context | None = None
    ) -> Context:
        """Return ``context`` with the remote span context from ``carrier``.

        When the header is missing or malformed, ``context`` is returned unchanged.
        """
        base = context if context is not None else Context()
        try:
            span_context = self.extract_span_context(carrier)
        except ValueError:
            return base
        return base.with_remote_span_context(span_context)

    def fields(self) -> tuple[str, ...]:
        """The header names this propagator reads and writes."""
        return (CLOUD_TRACE_CONTEXT_HEADER,)