"""Immutable ActionScript model for recorded and normalized browser actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from scenably.contracts import ACTION_SCRIPT_SCHEMA_V1, SUPPORTED_ACTION_SCRIPT_SCHEMAS

SELECTOR_KINDS = frozenset({
    "role",
    "text",
    "label",
    "placeholder",
    "test_id",
    "alt_text",
    "title",
    "locator",
})

OPERATIONS = frozenset({
    "navigate",
    "click",
    "dblclick",
    "fill",
    "press",
    "check",
    "uncheck",
    "select_option",
    "hover",
    "focus",
})

# Operations that may run without a target element.
PAGE_LEVEL_OPERATIONS = frozenset({"navigate", "press"})


@dataclass(frozen=True)
class Selector:
    """Target element descriptor.

    ``kind`` picks the locator strategy; ``value`` is the role name, text,
    label, test id or raw selector string. ``name`` and ``exact`` only apply
    to role selectors. ``nth`` narrows a multi-match (``-1`` means last).
    """

    kind: str
    value: str
    name: str | None = None
    exact: bool = False
    nth: int | None = None

    def __post_init__(self) -> None:
        if self.kind not in SELECTOR_KINDS:
            raise ValueError(f"unsupported selector kind: {self.kind}")
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("selector value must be non-empty string")

    def describe(self) -> str:
        """Return a compact human-readable form used in logs and failures."""
        text = f"{self.kind}={self.value}"
        if self.name is not None:
            text += f'[name="{self.name}"]'
        if self.exact:
            text += "[exact]"
        if self.nth is not None:
            text += f" >> nth={self.nth}"
        return text

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "value": self.value}
        if self.name is not None:
            payload["name"] = self.name
        if self.exact:
            payload["exact"] = True
        if self.nth is not None:
            payload["nth"] = self.nth
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Selector":
        if not isinstance(data, dict):
            raise ValueError("selector must be object")
        nth = data.get("nth")
        return cls(
            kind=str(data.get("kind", "")),
            value=str(data.get("value", "")),
            name=data.get("name"),
            exact=bool(data.get("exact", False)),
            nth=int(nth) if nth is not None else None,
        )


@dataclass(frozen=True)
class Action:
    """One user interaction: an operation on an optional target with its arguments."""

    operation: str
    selector: Selector | None = None
    value: str | None = None
    key: str | None = None
    url: str | None = None

    def __post_init__(self) -> None:
        if self.operation not in OPERATIONS:
            raise ValueError(f"unsupported operation: {self.operation}")
        if self.selector is None and self.operation not in PAGE_LEVEL_OPERATIONS:
            raise ValueError(f"operation '{self.operation}' requires a selector")
        if self.operation == "navigate" and not self.url:
            raise ValueError("navigate requires url")
        if self.operation in {"fill", "select_option"} and self.value is None:
            raise ValueError(f"{self.operation} requires value")
        if self.operation == "press" and not self.key:
            raise ValueError("press requires key")

    @classmethod
    def navigate(cls, url: str) -> "Action":
        return cls(operation="navigate", url=url)

    def describe(self) -> str:
        parts = [self.operation]
        if self.selector is not None:
            parts.append(self.selector.describe())
        if self.url is not None:
            parts.append(self.url)
        if self.value is not None:
            parts.append(repr(self.value))
        if self.key is not None:
            parts.append(self.key)
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"operation": self.operation}
        if self.selector is not None:
            payload["selector"] = self.selector.to_dict()
        for name in ("value", "key", "url"):
            item = getattr(self, name)
            if item is not None:
                payload[name] = item
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        if not isinstance(data, dict):
            raise ValueError("action must be object")
        selector_raw = data.get("selector")
        return cls(
            operation=str(data.get("operation", "")),
            selector=Selector.from_dict(selector_raw) if selector_raw is not None else None,
            value=data.get("value"),
            key=data.get("key"),
            url=data.get("url"),
        )


@dataclass(frozen=True)
class ActionScript:
    """Ordered, immutable sequence of actions."""

    actions: tuple[Action, ...] = ()
    schema_version: str = field(default=ACTION_SCRIPT_SCHEMA_V1)

    def __post_init__(self) -> None:
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "actions": [action.to_dict() for action in self.actions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionScript":
        if not isinstance(data, dict):
            raise ValueError("action script must be object")
        schema_version = data.get("schema_version", ACTION_SCRIPT_SCHEMA_V1)
        if schema_version not in SUPPORTED_ACTION_SCRIPT_SCHEMAS:
            raise ValueError(f"unsupported action script schema_version: {schema_version}")
        actions = data.get("actions", [])
        if not isinstance(actions, list):
            raise ValueError("'actions' must be list")
        return cls(actions=tuple(Action.from_dict(item) for item in actions))
