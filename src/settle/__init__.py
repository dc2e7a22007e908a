"""
Settle: synchronization core for test automation against eventually-consistent systems.

Answers "has this condition become true within this deadline?" for browser
pages and HTTP services, and wraps flaky interactions in bounded, backed-off
retries that understand stale handles.
"""

__version__ = "0.1.0"
