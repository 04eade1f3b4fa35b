"""Resource detectors, Cloud Trace context propagation and Stackdriver span export."""

__version__ = "0.1.0"