"""codetime: editor activity telemetry service."""

__version__ = "0.1.0"
