# otel-extras

Small building blocks for OpenTelemetry-style telemetry. The package has no
dependencies outside the standard library.

- **Resource detectors** describe where a process runs.
- A **Google Cloud Trace context propagator** handles the `X-Cloud-Trace-Context` header.
- A **Stackdriver span exporter** turns finished spans into Cloud Trace and Cloud Logging requests.

## Installation

```
pip install otel-extras
```

To run the tests, install the `test` extra (pytest and pytest-asyncio).

## Resources

`otel_extras.resource.Resource` is an immutable set of attributes with an
optional schema URL.

- Values may be strings, booleans, integers, floats, or sequences of these.
  Sequences are stored as tuples.
- `get(key)` returns the value for `key`, or `None`.
- `len(resource)` gives the number of attributes.
- Iterating a resource yields `(key, value)` pairs.
- `merge(other)` combines two resources, and values from `other` win. The
  schema URL is kept when only one side has one or when both agree. It is
  dropped when they conflict.

`ResourceDetector` is the abstract base class for detectors. It has a single
`detect()` method that returns a `Resource`.

## Resource detection

```python
from otel_extras.detectors import (
    HostResourceDetector,
    K8sResourceDetector,
    OsResourceDetector,
    ProcessResourceDetector,
)

resource = OsResourceDetector().detect()
for detector in (HostResourceDetector(), ProcessResourceDetector(), K8sResourceDetector()):
    resource = resource.merge(detector.detect())

print(resource.get("os.type"))    # e.g. "linux"
print(resource.get("host.arch"))  # e.g. "x86_64"
```

| Detector | Attributes |
|---|---|
| `OsResourceDetector` | `os.type`, for example `linux`, `macos` or `windows` |
| `HostResourceDetector` | `host.id` (when one is found), `host.arch`, for example `x86_64` or `aarch64` |
| `ProcessResourceDetector` | `process.command_args` (a tuple of strings), `process.pid` |
| `K8sResourceDetector` | `k8s.pod.name` from the `HOSTNAME` environment variable; `k8s.namespace.name` from the service-account namespace file |

Details:

- **`host_id_detect()`** finds the host id. On Linux it reads `/etc/machine-id`,
  falling back to `/var/lib/dbus/machine-id`. On macOS it runs `ioreg` and takes
  the `IOPlatformUUID`. On other systems it returns `None`.
- **`HostResourceDetector(host_id_detect=...)`** accepts any callable returning
  a string or `None` in place of `host_id_detect()`.
- **`K8sResourceDetector(namespace_path=...)`** reads the namespace from the
  given file. The default is
  `/var/run/secrets/kubernetes.io/serviceaccount/namespace`. The file content is
  used as is.
- **Missing values:** an attribute is left out when its environment variable or
  file is missing.

## Span contexts

`otel_extras.spancontext` provides the following:

- **`SpanContext`** is a frozen dataclass:
  - It has the fields `trace_id` (128-bit integer), `span_id` (64-bit integer),
    `trace_flags`, `is_remote` and `trace_state`.
  - `is_valid()` is true when both ids are non-zero.
  - `is_sampled()` checks the sampled flag.
  - `trace_id_hex()` and `span_id_hex()` give the ids as zero-padded hex.
- **`trace_id_from_hex(value)`** and **`span_id_from_hex(value)`** parse hex ids.
  They raise `ValueError` for bad input.
- **`Context`** holds the active span context.
  `with_remote_span_context(span_context)` returns a copy whose span context is
  marked remote.

## Cloud Trace context propagation

```python
from otel_extras.propagator import GoogleTraceContextPropagator
from otel_extras.spancontext import Context

propagator = GoogleTraceContextPropagator()

incoming = {"x-cloud-trace-context": "105445aa7843bc8bf206b12000100000/1;o=1"}
context = propagator.extract(incoming, Context())
print(context.span_context.span_id_hex())  # 0000000000000001

outgoing = {}
propagator.inject(context, outgoing)
print(outgoing)  # {'x-cloud-trace-context': '105445aa7843bc8bf206b12000100000/1;o=1'}
```

The header has the form `TRACE_ID/SPAN_ID;o=FLAGS`:

- `TRACE_ID` is 32 hex characters.
- `SPAN_ID` is a decimal 64-bit number.
- `;o=FLAGS` is optional. When it is absent, the context is sampled.

The methods behave as follows:

- **Header lookup** is case-insensitive.
- **`extract_span_context(carrier)`** raises `ValueError` when the header is
  missing or malformed, or when it gives an invalid context.
- **`extract(carrier, context=None)`** returns the given context unchanged in
  those cases.
- **`inject`** writes the header under the lower-case name. It writes nothing
  for an invalid span context.
- **`fields()`** returns `("X-Cloud-Trace-Context",)`.

## Stackdriver data model

`otel_extras.stackdriver_model` holds the data types.

Span types:

- `SpanData` describes a finished span, with `SpanEvent`, `SpanLink`,
  `SpanStatus`, `StatusCode` and `SpanKind`.

Attributes:

- `Attributes.build(attributes, resource=None)` builds the Cloud Trace
  attribute map. Resource attributes are added first, then span attributes.
- At most 32 entries are kept.
- Keys longer than 128 bytes are dropped. Dropped entries are counted in
  `dropped_attributes_count`.
- Conventional keys are renamed to Cloud Trace labels, for example
  `http.method` becomes `/http/method` and `k8s.pod.name` becomes
  `g.co/r/k8s_container/pod_name`. The full table is in `KEY_MAP`.

Conversion helpers:

- `attribute_value(value)` keeps booleans and integers. It renders floats,
  strings and arrays as strings.
- `span_status(status)` and `transform_links(links, dropped_count)` give the
  request structures for status and links.

Logging:

- `LogSeverity.from_level(level)` maps `DEBUG`/`TRACE`, `INFO`, `WARN` and
  `ERROR` to Cloud Logging severities. Other levels give `DEFAULT`.
- `LogContext(log_id, resource)` names the log that span events are written
  to. The resource is one of the monitored resources: `GlobalResource`,
  `GenericNode`, `GenericTask`, `CloudRunJob` or `CloudRunRevision`.
- `monitored_resource()` returns the resource's `type` and `labels`.

## Stackdriver export

`otel_extras.stackdriver_exporter.build_requests(batch, project_id, log_context=None, resource=None)`
turns a batch of `SpanData` into plain request dictionaries:

- It returns a span write request, plus a log write request when a log
  context is given.
- Without a log context, span events become annotations.
- With a log context, events become log entries. The `level` and `target`
  event attributes set severity and source location, and other attributes
  become labels.

The exporter runs uploads in the background:

```python
import asyncio
from otel_extras.stackdriver_exporter import Authorizer, StackDriverExporter


class StaticAuthorizer(Authorizer):
    def project_id(self):
        return "my-project"

    async def authorize(self, request, scopes):
        request.metadata["authorization"] = "Bearer token"


class PrintingTraceClient:
    async def batch_write_spans(self, request):
        print(request.message["name"], len(request.message["spans"]))


async def main(batch):
    exporter, worker = (
        StackDriverExporter.builder()
        .num_concurrent_requests(4)
        .build(StaticAuthorizer(), PrintingTraceClient())
    )
    task = asyncio.create_task(worker)
    exporter.export(batch)
    await exporter.shutdown()
    await task
```

Builder options:

- **`maximum_shutdown_duration(duration)`** takes a `timedelta` or seconds.
  The default is 5 seconds.
- **`num_concurrent_requests(n)`** limits concurrent uploads. `0` or unset
  means no limit.
- **`log_context(ctx)`** enables log writing. `build` then requires a
  `log_client` and raises `ValueError` without one.

Exporter methods:

- **`build(authorizer, trace_client, log_client=None)`** returns the exporter
  and a coroutine. The coroutine must be run for batches to be uploaded.
- **`export(batch)`** queues a batch without waiting.
  - It raises `StackDriverError` when 64 batches are already queued.
  - It also raises `StackDriverError` after shutdown.
- **`pending_count()`** is the number of queued batches the worker has not yet
  picked up.
- **`set_resource(resource)`** adds a resource's attributes to every exported
  span.
- **`await shutdown()`** waits up to the maximum shutdown duration for pending
  batches to be picked up. It then closes the queue, and the worker coroutine
  finishes once its uploads are done.
- **Upload failures:** authorization and client errors during upload are
  logged through the `logging` module, not raised.

## What this package does not do

It contains no network transport and no credential lookup. The trace and log
clients are objects you supply, and so is the `Authorizer`:

- The trace client has an async `batch_write_spans(request)` method.
- The log client has an async `write_log_entries(request)` method.
- Each request is a `Request` holding a `message` dictionary and a `metadata`
  dictionary.

Serializing these requests and sending them to Google Cloud is up to those
clients. Tracer and meter APIs are also out of scope: spans reach the exporter
only as `SpanData` values.