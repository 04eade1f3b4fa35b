"""Export finished spans to Google Cloud Trace and span events to Cloud Logging."""

from __future__ import annotations

import abc
import asyncio
import copy
import logging
import threading
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

from otel_extras.resource import Resource
from otel_extras.spancontext import INVALID_SPAN_ID
from otel_extras.stackdriver_model import (
    Attributes,
    LogContext,
    LogSeverity,
    SpanData,
    attribute_value,
    span_status,
    transform_links,
)

__all__ = [
    "TRACE_APPEND",
    "LOGGING_WRITE",
    "CHANNEL_CAPACITY",
    "StackDriverError",
    "Request",
    "Authorizer",
    "build_requests",
    "Builder",
    "StackDriverExporter",
]

TRACE_APPEND = "https://www.googleapis.com/auth/trace.append"
LOGGING_WRITE = "https://www.googleapis.com/auth/logging.write"
CHANNEL_CAPACITY = 64
_DEFAULT_SHUTDOWN = timedelta(seconds=5)

_log = logging.getLogger(__name__)
_CLOSE = object()


class StackDriverError(Exception):
    """An error raised or reported by the exporter.

    ``kind`` is one of ``"authorizer"``, ``"io"``, ``"other"`` or ``"transport"``.
    """

    exporter_name = "stackdriver"
    _PREFIXES = {
        "authorizer": "authorizer error: ",
        "io": "I/O error: ",
        "other": "",
        "transport": "transport error: ",
    }

    def __init__(self, kind: str, source: object) -> None:
        if kind not in self._PREFIXES:
            raise ValueError(f"unknown error kind: {kind!r}")
        super().__init__(kind, source)
        self.kind = kind
        self.source = source

    def __str__(self) -> str:
        return f"{self._PREFIXES[self.kind]}{self.source}"


@dataclass
class Request:
    """An outgoing request: a message body plus call metadata such as credentials."""

    message: dict[str, Any]
    metadata: dict[str, str] = field(default_factory=dict)


class Authorizer(abc.ABC):
    """Supplies the project id and authorizes outgoing requests."""

    @abc.abstractmethod
    def project_id(self) -> str:
        """The Google Cloud project the data is written to."""

    @abc.abstractmethod
    async def authorize(self, request: Request, scopes: Sequence[str]) -> None:
        """Add credentials for ``scopes`` to ``request``; raise on failure."""


class _TraceClient(Protocol):
    async def batch_write_spans(self, request: Request) -> Any: ...


class _LogClient(Protocol):
    async def write_log_entries(self, request: Request) -> Any: ...


def _truncatable(value: str) -> dict[str, Any]:
    return {"value": value, "truncated_byte_count": 0}


def _as_str(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return attribute_value(value).string_value or ""


def _log_entry(event, project_id, log_context, trace_hex, span_hex) -> dict[str, Any]:
    level = LogSeverity.DEFAULT
    target: str | None = None
    labels: dict[str, str] = {}
    for key, value in event.attributes:
        if key == "level":
            level = LogSeverity.from_level(_as_str(value))
        elif key == "target":
            target = _as_str(value)
        else:
            labels[key] = _as_str(value)
    return {
        "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
        "resource": log_context.monitored_resource(),
        "severity": int(level),
        "timestamp": event.timestamp,
        "labels": labels,
        "trace": f"projects/{project_id}/traces/{trace_hex}",
        "span_id": span_hex,
        "source_location": (
            None if target is None else {"file": "", "line": 0, "function": target}
        ),
        "text_payload": event.name,
    }


def build_requests(
    batch: Iterable[SpanData],
    project_id: str,
    log_context: LogContext | None = None,
    resource: Resource | None = None,
) -> tuple[dict[str, Any], dict[str, Any] | None]:
    """Build the span write request and, with a log context, the log write request.

    Without a log context, span events become annotations; with one, they
    become log entries instead and the spans carry no time events.
    """
    spans: list[dict[str, Any]] = []
    entries: list[dict[str, Any]] = []
    for span in batch:
        trace_hex = span.span_context.trace_id_hex()
        span_hex = span.span_context.span_id_hex()
        if log_context is None:
            time_event = [
                {"time": event.timestamp, "annotation": {"description": _truncatable(event.name)}}
                for event in span.events
            ]
        else:
            entries.extend(
                _log_entry(event, project_id, log_context, trace_hex, span_hex)
                for event in span.events
            )
            time_event = []
        spans.append(
            {
                "name": f"projects/{project_id}/traces/{trace_hex}/spans/{span_hex}",
                "display_name": _truncatable(span.name),
                "span_id": span_hex,
                "parent_span_id": (
                    "" if span.parent_span_id == INVALID_SPAN_ID
                    else f"{span.parent_span_id:016x}"
                ),
                "start_time": span.start_time,
                "end_time": span.end_time,
                "attributes": Attributes.build(span.attributes, resource),
                "time_events": {
                    "time_event": time_event,
                    "dropped_annotations_count": 0,
                    "dropped_message_events_count": 0,
                },
                "links": transform_links(span.links, span.dropped_links_count),
                "status": span_status(span.status),
                "span_kind": int(span.span_kind),
            }
        )
    trace_request = {"name": f"projects/{project_id}", "spans": spans}
    if log_context is None:
        return trace_request, None
    log_request = {
        "log_name": f"projects/{project_id}/logs/{log_context.log_id}",
        "entries": entries,
        "dry_run": False,
        "labels": {},
        "partial_success": True,
        "resource": None,
    }
    return trace_request, log_request


class _Shared:
    """State shared between the exporter and its background worker."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.lock = threading.Lock()
        self.pending = 0
        self.resource: Resource | None = None
        self.closed = False

    def add_pending(self, delta: int) -> None:
        with self.lock:
            self.pending += delta


class _Worker:
    def __init__(self, shared, authorizer, trace_client, log_client, log_context, limit):
        self._shared = shared
        self._authorizer = authorizer
        self._trace_client = trace_client
        self._log_client = log_client
        self._log_context = log_context
        self._limit = limit
        self._scopes = (
            (TRACE_APPEND,) if log_context is None else (TRACE_APPEND, LOGGING_WRITE)
        )

    async def run(self) -> None:
        semaphore = asyncio.Semaphore(self._limit) if self._limit else None
        tasks: set[asyncio.Task] = set()
        while True:
            batch = await self._shared.queue.get()
            if batch is _CLOSE:
                break
            if semaphore is not None:
                await semaphore.acquire()
            task = asyncio.ensure_future(self._guarded(batch, semaphore))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)

    async def _guarded(self, batch, semaphore) -> None:
        try:
            await self._export(batch)
        finally:
            if semaphore is not None:
                semaphore.release()

    async def _send(self, message, call) -> None:
        request = Request(message)
        try:
            await self._authorizer.authorize(request, self._scopes)
        except Exception as exc:  # reported, never raised from the worker
            _log.error("ExportAuthorizeError: %s", StackDriverError("authorizer", exc))
            return
        try:
            await call(request)
        except Exception as exc:
            _log.error("ExportTransportError: %s", StackDriverError("transport", exc))

    async def _export(self, batch: Sequence[SpanData]) -> None:
        with self._shared.lock:
            resource = self._shared.resource
        trace_request, log_request = build_requests(
            batch, self._authorizer.project_id(), self._log_context, resource
        )
        self._shared.add_pending(-1)
        await self._send(trace_request, self._trace_client.batch_write_spans)
        if log_request is not None:
            await self._send(log_request, self._log_client.write_log_entries)


class StackDriverExporter:
    """Queues span batches for a background worker that uploads them."""

    def __init__(self, shared: _Shared, maximum_shutdown_duration: timedelta) -> None:
        self._shared = shared
        self.maximum_shutdown_duration = maximum_shutdown_duration

    @staticmethod
    def builder() -> Builder:
        """Return a builder with default settings."""
        return Builder()

    def pending_count(self) -> int:
        """Number of batches queued but not yet picked up by the worker."""
        with self._shared.lock:
            return self._shared.pending

    def export(self, batch: Iterable[SpanData]) -> None:
        """Queue a batch without waiting; raise ``StackDriverError`` if the queue is full or closed."""
        shared = self._shared
        if shared.closed:
            raise StackDriverError("other", "exporter is shut down")
        if shared.queue.qsize() >= CHANNEL_CAPACITY:
            raise StackDriverError("other", "export queue is full")
        shared.queue.put_nowait(list(batch))
        shared.add_pending(1)

    async def shutdown(self) -> None:
        """Wait up to the maximum shutdown duration for pending batches, then close the queue."""
        deadline = time.monotonic() + self.maximum_shutdown_duration.total_seconds()
        while time.monotonic() < deadline and self.pending_count() > 0:
            await asyncio.sleep(0)
        if not self._shared.closed:
            self._shared.closed = True
            self._shared.queue.put_nowait(_CLOSE)

    def set_resource(self, resource: Resource) -> None:
        """Set the resource whose attributes are added to every exported span."""
        with self._shared.lock:
            self._shared.resource = resource

    def __repr__(self) -> str:
        return (
            "StackDriverExporter(tx='(elided)', "
            f"pending_count={self.pending_count()}, "
            f"maximum_shutdown_duration={self.maximum_shutdown_duration!r})"
        )


class Builder:
    """Configures and creates a :class:`StackDriverExporter`."""

    def __init__(self) -> None:
        self._maximum_shutdown_duration: timedelta | None = None
        self._num_concurrent_requests: int | None = None
        self._log_context: LogContext | None = None

    def _with(self, **changes: Any) -> Builder:
        new = copy.copy(self)
        for name, value in changes.items():
            setattr(new, name, value)
        return new

    def maximum_shutdown_duration(self, duration: timedelta | float) -> Builder:
        """Set how long shutdown waits for pending data; defaults to 5 seconds."""
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)
        return self._with(_maximum_shutdown_duration=duration)

    def num_concurrent_requests(self, num_concurrent_requests: int) -> Builder:
        """Limit concurrent uploads; ``0`` means no limit."""
        return self._with(_num_concurrent_requests=num_concurrent_requests)

    def log_context(self, log_context: LogContext) -> Builder:
        """Write span events as log entries with the given context."""
        return self._with(_log_context=log_context)

    def build(self, authorizer: Authorizer, trace_client: _TraceClient,
              log_client: _LogClient | None = None):
        """Return the exporter and the coroutine that uploads its batches."""
        if self._log_context is not None and log_client is None:
            raise ValueError("a log client is required when a log context is set")
        shared = _Shared()
        worker = _Worker(
            shared,
            authorizer,
            trace_client,
            log_client if self._log_context is not None else None,
            self._log_context,
            self._num_concurrent_requests,
        )
        exporter = StackDriverExporter(
            shared, self._maximum_shutdown_duration or _DEFAULT_SHUTDOWN
        )
        return exporter, worker.run()