"""Deterministic failure taxonomy and fingerprint utilities for replayed actions."""

from __future__ import annotations

import hashlib

from scenably.contracts import ERROR_SCHEMA_V1

INFRASTRUCTURE_MARKERS = (
    "target closed",
    "target page, context or browser has been closed",
    "browser has been closed",
    "browser closed",
    "connection closed",
    "process exited",
    "playwright connection",
)


def build_failure(
    *,
    error_class: str,
    error_code: str,
    step_id: str,
    url: str,
    message: str,
    selector: str = "",
) -> dict[str, str]:
    """Build a stable failure payload for execution results and schedule runs."""
    fingerprint_input = "|".join(
        [
            error_class,
            error_code,
            step_id or "",
            selector or "",
            url or "",
        ]
    )
    fingerprint = hashlib.sha256(fingerprint_input.encode("utf-8")).hexdigest()
    return {
        "error_schema_version": ERROR_SCHEMA_V1,
        "error_class": error_class,
        "error_code": error_code,
        "step_id": step_id,
        "selector": selector or "",
        "url": url or "",
        "message": message,
        "fingerprint": fingerprint,
    }


def is_infrastructure_message(message: str) -> bool:
    """Return True when an error message indicates the browser itself went away."""
    lower = (message or "").lower()
    return any(marker in lower for marker in INFRASTRUCTURE_MARKERS)


# Per-operation codes for interaction errors with no more specific match.
OPERATION_FAILURE_CODES = {
    "click": "ACT_CLICK_FAILED",
    "dblclick": "ACT_CLICK_FAILED",
    "fill": "ACT_FILL_FAILED",
    "press": "ACT_PRESS_FAILED",
    "check": "ACT_CHECK_FAILED",
    "uncheck": "ACT_CHECK_FAILED",
    "navigate": "NAV_FAILED",
}


def _classify_message(message: str, operation: str) -> tuple[str, str]:
    lower = message.lower()
    if is_infrastructure_message(message):
        return "infrastructure", "INFRA_BROWSER_CLOSED"
    if "strict mode" in lower:
        return "selector_ambiguous", "SEL_AMBIGUOUS"
    if "not found" in lower or "waiting for selector" in lower or "waiting for locator" in lower:
        return "selector_not_found", "SEL_NOT_FOUND"
    if "timeout" in lower:
        return "timeout", "TIMEOUT_OPERATION"
    return "interaction_failed", OPERATION_FAILURE_CODES.get(operation, "ACT_COMMAND_FAILED")


def classify_failure(
    *,
    error: Exception,
    step_id: str,
    operation: str = "",
    selector: str = "",
    url: str = "",
) -> dict[str, str]:
    """Classify a replay exception into the versioned error taxonomy."""
    message = str(error)
    error_class, error_code = _classify_message(message, operation)
    return build_failure(
        error_class=error_class,
        error_code=error_code,
        step_id=step_id,
        selector=selector,
        url=url,
        message=message,
    )
