"""HTTP adapter: handles and conditions for eventually-consistent REST resources.

An HttpResourceHandle names one resource URL on an httpx.Client. Its
generation is the resource's ETag, or a hash of the body when the server
sends none, so a replaced resource is detected like a re-rendered element.

Transport errors raised while probing are converted by the signature policy:
"connection refused" and timeouts keep a condition PENDING, "connection reset
by peer" invalidates, anything else is FATAL.
"""

from __future__ import annotations

import hashlib
from typing import Any

import httpx
import structlog

from settle.contracts.results import ConditionResult
from settle.contracts.specs import Condition
from settle.engine.conditions import convert_driver_error

logger = structlog.get_logger(__name__)

_MISSING = object()


class HttpResourceHandle:
    """Handle to a single HTTP resource.

    Example:
        with httpx.Client(base_url="https://api.example.test") as client:
            policy = HttpResourceHandle(client, "/policies/42")
            spec = presets.wait("long").with_conditions(
                status_is(200),
                json_field_equals("status", "ACTIVE"),
            )
            strategy.wait_until_ready(policy, spec).raise_for_failure()
    """

    def __init__(self, client: httpx.Client, url: str, *, headers: dict[str, str] | None = None) -> None:
        self._client = client
        self._url = url
        self._headers = headers or {}
        self._last_response: httpx.Response | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def description(self) -> str:
        return f"GET {self._url}"

    @property
    def last_response(self) -> httpx.Response | None:
        """The response from the most recent fetch(), if any."""
        return self._last_response

    def fetch(self) -> httpx.Response:
        """GET the resource. Transport errors propagate unchanged."""
        response = self._client.get(self._url, headers=self._headers)
        self._last_response = response
        return response

    def generation(self) -> str:
        """ETag of the resource, falling back to a SHA-256 of its body.

        A 404 is reported as "not found" so the tracker treats the resource
        as gone.
        """
        response = self.fetch()
        if response.status_code == httpx.codes.NOT_FOUND:
            raise LookupError(f"{self.description}: resource not found")
        etag = response.headers.get("etag")
        if etag:
            return etag
        return hashlib.sha256(response.content).hexdigest()

    def __repr__(self) -> str:
        return f"HttpResourceHandle({self._url!r})"


def status_is(code: int, name: str | None = None) -> Condition:
    """Resource responds with the given status code."""

    def evaluate(handle: HttpResourceHandle) -> ConditionResult:
        try:
            response = handle.fetch()
        except httpx.TransportError as e:
            return convert_driver_error(e)
        if response.status_code == code:
            return ConditionResult.satisfied(response)
        return ConditionResult.pending()

    return Condition(name=name or f"status_is[{code}]", evaluate=evaluate)


def _lookup(document: Any, path: str) -> Any:
    """Walk a dotted path ("data.items.0.id") through dicts and lists."""
    current = document
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def json_field_equals(path: str, value: Any, name: str | None = None) -> Condition:
    """Resource's JSON body has value at the dotted path.

    A missing field, a non-2xx response, or a body that is not JSON yet keeps
    the condition pending.
    """
    if not path:
        raise ValueError("path must be non-empty")

    def evaluate(handle: HttpResourceHandle) -> ConditionResult:
        try:
            response = handle.fetch()
        except httpx.TransportError as e:
            return convert_driver_error(e)
        if not response.is_success:
            return ConditionResult.pending()
        try:
            document = response.json()
        except ValueError:
            logger.debug("response_not_json", handle=handle.description, status=response.status_code)
            return ConditionResult.pending()
        current = _lookup(document, path)
        if current is not _MISSING and current == value:
            return ConditionResult.satisfied(current)
        return ConditionResult.pending()

    return Condition(name=name or f"json_field_equals[{path}]", evaluate=evaluate)
