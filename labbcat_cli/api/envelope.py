"""
Normalizes LaBB-CAT responses into a uniform ``CallOutcome``.

Every non-binary call to the server returns a JSON envelope of the form::

    {"model": <payload or {"result": <payload>}>, "errors": [...], "messages": [...]}

Whatever happens to a request (a parsed envelope, a malformed body, an HTTP
error, a dropped connection or a cancelled task) the caller receives exactly one
``CallOutcome`` whose ``errors`` and ``messages`` are either non-empty lists or
None.
"""

import json
from typing import Any, Callable, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

DiagnosticHook = Callable[[str], None]


class ResultEnvelope(BaseModel):
    """The server's uniform JSON wrapper."""

    model_config = ConfigDict(extra="ignore")

    model: Any = None
    errors: Optional[list[Any]] = None
    messages: Optional[list[Any]] = None


class CallOutcome(NamedTuple):
    """
    The settled result of one call.

    Unpacks like the classic five-argument result callback::

        result, errors, messages, call, item_id = await store.get_layer("word")
    """

    result: Any
    errors: Optional[list[str]]
    messages: Optional[list[str]]
    call: str
    item_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.errors


def _or_none(values: Optional[list[Any]]) -> Optional[list[str]]:
    if not values:
        return None
    return [str(v) for v in values]


def extract_result(model: Any) -> Any:
    """
    Picks the payload out of an envelope's ``model``.

    ``model["result"]`` wins whenever the key is present with a non-null value,
    so falsy payloads such as ``0``, ``""``, ``[]`` and ``False`` are returned
    as-is rather than being mistaken for an absent result.
    """
    if isinstance(model, Mapping) and model.get("result") is not None:
        return model["result"]
    return model


def normalize_response(
    body: str,
    call: str,
    item_id: Optional[str] = None,
    diagnostic: Optional[DiagnosticHook] = None,
) -> CallOutcome:
    """Turns a successful response body into a CallOutcome."""
    try:
        envelope = ResultEnvelope.model_validate_json(body)
    except ValidationError as e:
        if diagnostic:
            diagnostic(f"{call}: could not parse response: {e}")
        return CallOutcome(None, [f"{_describe_parse_error(e)}: {body}"], None, call, item_id)

    result = extract_result(envelope.model)
    if diagnostic:
        diagnostic(f"{call} result: {json.dumps(result, default=str)[:500]}")
    return CallOutcome(
        result,
        _or_none(envelope.errors),
        _or_none(envelope.messages),
        call,
        item_id,
    )


def _describe_parse_error(error: ValidationError) -> str:
    first = error.errors()[0] if error.error_count() else {}
    return f"Invalid response ({first.get('type', 'parse_error')}: {first.get('msg', error)})"


def failed_outcome(
    description: str, call: str, item_id: Optional[str] = None
) -> CallOutcome:
    """Outcome for a request that never produced a response (connection refused, timeout...)."""
    return CallOutcome(None, [f"failed: {description}"], None, call, item_id)


def http_failure_outcome(
    status: int,
    reason: Optional[str],
    body: str,
    call: str,
    item_id: Optional[str] = None,
) -> CallOutcome:
    """
    Outcome for a non-2xx response.

    The server usually still sends an envelope whose errors explain the failure
    (e.g. "not found"); those are folded into the single error string, falling
    back to the raw body.
    """
    detail = body.strip()
    try:
        envelope = ResultEnvelope.model_validate_json(body)
        if envelope.errors:
            detail = "; ".join(str(e) for e in envelope.errors)
    except ValidationError:
        pass
    description = f"{status} {reason or ''}".strip()
    if detail:
        description = f"{description}: {detail}"
    return failed_outcome(description, call, item_id)


def cancelled_outcome(call: str, item_id: Optional[str] = None) -> CallOutcome:
    return CallOutcome(None, ["cancelled"], None, call, item_id)
