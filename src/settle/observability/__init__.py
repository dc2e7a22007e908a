"""Observability sinks for wait and retry outcomes.

The engine reports to a single ObservabilitySink. LoggingSink is the
default; HookSink forwards to pluggy observer plugins; CompositeSink fans out.
"""

from settle.observability.hooks import HookSink
from settle.observability.hookspecs import hookimpl
from settle.observability.protocols import ObservabilitySink
from settle.observability.sinks import CompositeSink, LoggingSink, NullSink, RecordingSink

__all__ = [
    "CompositeSink",
    "HookSink",
    "LoggingSink",
    "NullSink",
    "ObservabilitySink",
    "RecordingSink",
    "hookimpl",
]
