import pytest

from otel_extras.propagator import CLOUD_TRACE_CONTEXT_HEADER, GoogleTraceContextPropagator
from otel_extras.spancontext import (
    TRACE_FLAGS_SAMPLED,
    Context,
    SpanContext,
    span_id_from_hex,
    trace_id_from_hex,
)

KEY = CLOUD_TRACE_CONTEXT_HEADER.lower()
TRACE_HEX = "105445aa7843bc8bf206b12000100000"


def test_extract_span_context_valid():
    sc = GoogleTraceContextPropagator().extract_span_context({KEY: f"{TRACE_HEX}/1;o=1"})
    assert sc.trace_id_hex() == TRACE_HEX
    assert sc.span_id == 1
    assert sc.is_sampled()


def test_extract_span_context_valid_without_options():
    sc = GoogleTraceContextPropagator().extract_span_context({KEY: f"{TRACE_HEX}/1"})
    assert sc.trace_id_hex() == TRACE_HEX
    assert sc.span_id == 1
    assert sc.is_sampled()


def test_extract_span_context_valid_not_sampled():
    sc = GoogleTraceContextPropagator().extract_span_context({KEY: f"{TRACE_HEX}/1;o=0"})
    assert sc.trace_id_hex() == TRACE_HEX
    assert sc.span_id == 1
    assert not sc.is_sampled()


def test_extract_span_context_invalid():
    with pytest.raises(ValueError):
        GoogleTraceContextPropagator().extract_span_context({})


def test_extract_header_lookup_is_case_insensitive():
    sc = GoogleTraceContextPropagator().extract_span_context(
        {CLOUD_TRACE_CONTEXT_HEADER: f"  {TRACE_HEX}/1;o=1 "}
    )
    assert sc.span_id == 1


@pytest.mark.parametrize(
    "value",
    [
        f"{TRACE_HEX}/0;o=1",
        f"{'0' * 32}/1;o=1",
        f"{TRACE_HEX}/18446744073709551616",
        f"{TRACE_HEX}/1;o=256",
        f"{TRACE_HEX}/-1",
        f"{TRACE_HEX}1",
    ],
)
def test_extract_span_context_rejects_bad_values(value):
    with pytest.raises(ValueError):
        GoogleTraceContextPropagator().extract_span_context({KEY: value})


def test_inject_context_valid():
    span_context = SpanContext(
        trace_id=trace_id_from_hex(TRACE_HEX),
        span_id=span_id_from_hex("0000000000000001"),
        trace_flags=TRACE_FLAGS_SAMPLED,
        is_remote=True,
    )
    headers = {}
    GoogleTraceContextPropagator().inject(Context(span_context), headers)
    assert headers == {KEY: "105445aa7843bc8bf206b12000100000/1;o=1"}


def test_inject_invalid_context_writes_nothing():
    headers = {}
    GoogleTraceContextPropagator().inject(Context(), headers)
    assert headers == {}


def test_inject_extract_round_trip():
    propagator = GoogleTraceContextPropagator()
    span_context = SpanContext(trace_id=trace_id_from_hex(TRACE_HEX), span_id=10, trace_flags=0)
    headers = {}
    propagator.inject(Context(span_context), headers)
    extracted = propagator.extract(headers).span_context
    assert extracted.trace_id == span_context.trace_id
    assert extracted.span_id == span_context.span_id
    assert extracted.is_sampled() == span_context.is_sampled()


def test_extract_with_context_valid():
    new_cx = GoogleTraceContextPropagator().extract({KEY: f"{TRACE_HEX}/10;o=1"}, Context())
    assert new_cx.span_context.is_valid()
    assert new_cx.span_context.is_remote
    assert new_cx.span_context.span_id_hex() == "000000000000000a"


def test_extract_with_context_invalid_trace_id():
    new_cx = GoogleTraceContextPropagator().extract({KEY: "105445aa7843bc8b/1;o=1"}, Context())
    assert not new_cx.span_context.is_valid()


def test_extract_with_context_invalid_span_id():
    new_cx = GoogleTraceContextPropagator().extract({KEY: "105445aa7843bc8b/1abc;o=1"}, Context())
    assert not new_cx.span_context.is_valid()


def test_extract_failure_returns_given_context():
    existing = Context(SpanContext(trace_id=3, span_id=4))
    assert GoogleTraceContextPropagator().extract({}, existing) is existing


def test_fields():
    assert GoogleTraceContextPropagator().fields() == ("X-Cloud-Trace-Context",)