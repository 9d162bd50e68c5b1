"""Codegen transcript to ActionScript transformer.

A recorder transcript is read as three zones: the pre-block preamble
(imports, ``require`` calls), the recorded interaction block, and the
post-block tail (``main()`` helpers, ``asyncio.run``). Only page operations
inside the interaction block become actions; scaffolding and teardown lines
inside the block are dropped.

Two transcript dialects are recognised by their block-entry line:

* ``python`` -- Playwright ``--target python-async`` / ``python`` output,
  block opened by ``async def run(`` and closed by the first non-blank
  line back at column zero.
* ``javascript`` -- Playwright ``--target javascript`` output, block opened
  by ``(async () => {`` and closed by ``})();``. The ``@playwright/test``
  shell (``test('...', async ({ page }) => {`` ... ``});``) is accepted too.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from scenably.recorder.script import Action, ActionScript, Selector

logger = logging.getLogger("scenably.recorder.codegen")

DIALECT_PYTHON = "python"
DIALECT_JAVASCRIPT = "javascript"
DIALECT_JAVASCRIPT_TEST = "javascript_test"

ZONE_PRE_BLOCK = "pre_block"
ZONE_IN_BLOCK = "in_block"
ZONE_POST_BLOCK = "post_block"

ROLE_ENTRY = "entry"
ROLE_EXIT = "exit"
ROLE_SCAFFOLD = "scaffold"
ROLE_TEARDOWN = "teardown"
ROLE_PAGE_OPERATION = "page_operation"
ROLE_IGNORED = "ignored"

_PYTHON_ENTRY = re.compile(r"^(async\s+)?def\s+run\s*\(")
_JAVASCRIPT_ENTRY = re.compile(r"\(\s*async\s*\(\s*\)\s*=>\s*\{\s*$")
_JAVASCRIPT_TEST_ENTRY = re.compile(r"^test\s*\(.*async\s*\(\s*\{[^}]*\bpage\b[^}]*\}\s*\)\s*=>\s*\{\s*$")
_SCAFFOLD = re.compile(r"^(?:(?:const|let|var)\s+)?(?:browser|context|page)\s*=")
_TEARDOWN = re.compile(r"^(?:await\s+)?(?:page|context|browser)\.close\(\s*\)\s*;?$")
_PAGE_OPERATION = re.compile(r"^(?:await\s+)?page\s*\.")
_JS_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_JS_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_LOCATOR_FACTORIES = {
    "get_by_role": "role",
    "get_by_text": "text",
    "get_by_label": "label",
    "get_by_placeholder": "placeholder",
    "get_by_test_id": "test_id",
    "get_by_alt_text": "alt_text",
    "get_by_title": "title",
    "locator": "locator",
}
_FACTORY_FOR_KIND = {kind: method for method, kind in _LOCATOR_FACTORIES.items()}
# Keyword arguments a locator factory may carry; any other keyword makes the line unsupported.
_SELECTOR_KEYWORDS = {
    "role": frozenset({"name", "exact"}),
    "text": frozenset({"exact"}),
    "label": frozenset({"exact"}),
    "placeholder": frozenset({"exact"}),
    "alt_text": frozenset({"exact"}),
    "title": frozenset({"exact"}),
    "test_id": frozenset(),
    "locator": frozenset(),
}

_ELEMENT_OPERATIONS = frozenset({
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

# Operation -> name of the Action field carrying its first positional argument.
_OPERATION_ARGUMENT = {
    "fill": "value",
    "press": "key",
    "select_option": "value",
}


@dataclass(frozen=True)
class TranscriptLine:
    """One transcript line annotated with its zone and grammatical role."""

    number: int
    text: str
    zone: str
    role: str


@dataclass(frozen=True)
class _Segment:
    """One ``.name(args)`` or ``.name`` link of a call chain rooted at ``page``."""

    name: str
    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)
    called: bool = True


def _match_entry(stripped: str) -> str | None:
    if _PYTHON_ENTRY.match(stripped):
        return DIALECT_PYTHON
    if _JAVASCRIPT_ENTRY.search(stripped):
        return DIALECT_JAVASCRIPT
    if _JAVASCRIPT_TEST_ENTRY.match(stripped):
        return DIALECT_JAVASCRIPT_TEST
    return None


def _is_exit(dialect: str, raw: str, stripped: str) -> bool:
    if dialect == DIALECT_PYTHON:
        return bool(stripped) and raw[:1] not in (" ", "\t")
    if dialect == DIALECT_JAVASCRIPT:
        return stripped.startswith("})();")
    return stripped.startswith("});")


def _is_comment(dialect: str, stripped: str) -> bool:
    if dialect == DIALECT_PYTHON:
        return stripped.startswith("#")
    return stripped.startswith("//") or stripped.startswith("/*") or stripped.startswith("*")


def segment_transcript(transcript: str) -> tuple[str | None, list[TranscriptLine]]:
    """Split a transcript into zoned lines and return ``(dialect, lines)``.

    ``dialect`` is ``None`` when no block-entry marker exists, in which case
    every line is in the pre-block zone.
    """
    dialect: str | None = None
    zone = ZONE_PRE_BLOCK
    lines: list[TranscriptLine] = []

    for number, raw in enumerate((transcript or "").splitlines(), start=1):
        stripped = raw.strip()

        if zone == ZONE_POST_BLOCK:
            lines.append(TranscriptLine(number, raw, ZONE_POST_BLOCK, ROLE_IGNORED))
            continue

        # The pre-block zone lasts exactly until an entry marker fixes the dialect.
        if dialect is None:
            dialect = _match_entry(stripped)
            if dialect is not None:
                zone = ZONE_IN_BLOCK
                lines.append(TranscriptLine(number, raw, ZONE_PRE_BLOCK, ROLE_ENTRY))
            else:
                lines.append(TranscriptLine(number, raw, ZONE_PRE_BLOCK, ROLE_IGNORED))
            continue

        if _is_exit(dialect, raw, stripped):
            zone = ZONE_POST_BLOCK
            lines.append(TranscriptLine(number, raw, ZONE_POST_BLOCK, ROLE_EXIT))
            continue

        if not stripped or _is_comment(dialect, stripped):
            role = ROLE_IGNORED
        elif _SCAFFOLD.match(stripped):
            role = ROLE_SCAFFOLD
        elif _TEARDOWN.match(stripped):
            role = ROLE_TEARDOWN
        elif _PAGE_OPERATION.match(stripped):
            role = ROLE_PAGE_OPERATION
        else:
            role = ROLE_IGNORED
        lines.append(TranscriptLine(number, raw, ZONE_IN_BLOCK, role))

    return dialect, lines


def transform_transcript(transcript: str) -> ActionScript:
    """Reduce a raw recorder transcript to its canonical ActionScript.

    Pure and deterministic. A transcript without a block-entry marker yields
    an empty script. Page operations that cannot be mapped onto the action
    vocabulary are skipped with a warning.
    """
    dialect, lines = segment_transcript(transcript)
    if dialect is None:
        logger.info("No recorded interaction block found in transcript")
        return ActionScript()

    actions: list[Action] = []
    for line in lines:
        if line.role != ROLE_PAGE_OPERATION:
            continue
        action = parse_action_line(line.text, dialect)
        if action is None:
            logger.warning("Skipping unsupported page operation on line %d: %s", line.number, line.text.strip())
            continue
        actions.append(action)

    logger.info("Transformed %s transcript into %d actions", dialect, len(actions))
    return ActionScript(actions=tuple(actions))


def parse_action_line(line: str, dialect: str) -> Action | None:
    """Parse one in-block page operation line into an Action, or ``None``."""
    statement = line.strip()
    if statement.startswith("await "):
        statement = statement[len("await "):].strip()
    if dialect == DIALECT_PYTHON:
        segments = _python_segments(statement)
    else:
        segments = _javascript_segments(statement.rstrip(";").strip())
    if not segments:
        return None
    try:
        return _build_action(segments)
    except ValueError as exc:
        logger.debug("Rejected page operation %r: %s", statement, exc)
        return None


def _python_segments(expression: str) -> list[_Segment] | None:
    try:
        node = ast.parse(expression, mode="eval").body
    except SyntaxError:
        return None

    segments: list[_Segment] = []
    try:
        while True:
            if isinstance(node, ast.Call):
                func = node.func
                if not isinstance(func, ast.Attribute):
                    return None
                if any(keyword.arg is None for keyword in node.keywords):
                    return None
                args = [ast.literal_eval(arg) for arg in node.args]
                kwargs = {keyword.arg: ast.literal_eval(keyword.value) for keyword in node.keywords}
                segments.append(_Segment(func.attr, args, kwargs, called=True))
                node = func.value
            elif isinstance(node, ast.Attribute):
                segments.append(_Segment(node.attr, called=False))
                node = node.value
            elif isinstance(node, ast.Name) and node.id == "page":
                break
            else:
                return None
    except (ValueError, TypeError, SyntaxError):
        return None

    segments.reverse()
    return segments


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _javascript_segments(expression: str) -> list[_Segment] | None:
    try:
        raw_segments = _JsChainParser(expression).parse()
    except ValueError:
        return None
    segments: list[_Segment] = []
    for name, args, called in raw_segments:
        kwargs: dict[str, Any] = {}
        if args and isinstance(args[-1], dict):
            kwargs = args[-1]
            args = args[:-1]
        segments.append(_Segment(_snake_case(name), args, kwargs, called))
    return segments


class _JsChainParser:
    """Minimal recursive-descent reader for ``page.a(...).b(...)`` chains."""

    _ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> list[tuple[str, list[Any], bool]]:
        self._skip_ws()
        if self._identifier() != "page":
            raise ValueError("chain must start at page")
        segments: list[tuple[str, list[Any], bool]] = []
        while True:
            self._skip_ws()
            if self._peek() != ".":
                break
            self.pos += 1
            self._skip_ws()
            name = self._identifier()
            self._skip_ws()
            if self._peek() == "(":
                self.pos += 1
                segments.append((name, self._arguments(), True))
            else:
                segments.append((name, [], False))
        self._skip_ws()
        if self.pos != len(self.text):
            raise ValueError(f"unexpected input at {self.pos}")
        return segments

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _identifier(self) -> str:
        match = _JS_IDENTIFIER.match(self.text, self.pos)
        if not match:
            raise ValueError(f"identifier expected at {self.pos}")
        self.pos = match.end()
        return match.group(0)

    def _arguments(self) -> list[Any]:
        args: list[Any] = []
        self._skip_ws()
        if self._peek() == ")":
            self.pos += 1
            return args
        while True:
            args.append(self._value())
            self._skip_ws()
            char = self._peek()
            if char == ",":
                self.pos += 1
                self._skip_ws()
                if self._peek() == ")":
                    self.pos += 1
                    return args
                continue
            if char == ")":
                self.pos += 1
                return args
            raise ValueError(f"',' or ')' expected at {self.pos}")

    def _value(self) -> Any:
        self._skip_ws()
        char = self._peek()
        if char in ("'", '"', "`"):
            return self._string()
        if char == "{":
            return self._object()
        if char == "[":
            return self._array()
        number = _JS_NUMBER.match(self.text, self.pos)
        if number:
            self.pos = number.end()
            literal = number.group(0)
            return float(literal) if "." in literal else int(literal)
        word = self._identifier()
        if word == "true":
            return True
        if word == "false":
            return False
        if word in ("null", "undefined"):
            return None
        raise ValueError(f"unsupported literal: {word}")

    def _string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        out: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 1
                escaped = self._peek()
                if escaped == "u":
                    out.append(self._unicode_escape())
                    continue
                out.append(self._ESCAPES.get(escaped, escaped))
                self.pos += 1
                continue
            if char == quote:
                self.pos += 1
                return "".join(out)
            if quote == "`" and self.text.startswith("${", self.pos):
                raise ValueError("template interpolation is not a literal")
            out.append(char)
            self.pos += 1
        raise ValueError("unterminated string")

    def _unicode_escape(self) -> str:
        self.pos += 1
        if self._peek() == "{":
            end = self.text.index("}", self.pos)
            code = self.text[self.pos + 1:end]
            self.pos = end + 1
        else:
            code = self.text[self.pos:self.pos + 4]
            self.pos += 4
        return chr(int(code, 16))

    def _object(self) -> dict[str, Any]:
        self.pos += 1
        result: dict[str, Any] = {}
        while True:
            self._skip_ws()
            if self._peek() == "}":
                self.pos += 1
                return result
            key = self._string() if self._peek() in ("'", '"') else self._identifier()
            self._skip_ws()
            if self._peek() != ":":
                raise ValueError(f"':' expected at {self.pos}")
            self.pos += 1
            result[key] = self._value()
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
            elif self._peek() != "}":
                raise ValueError(f"',' or '}}' expected at {self.pos}")

    def _array(self) -> list[Any]:
        self.pos += 1
        items: list[Any] = []
        while True:
            self._skip_ws()
            if self._peek() == "]":
                self.pos += 1
                return items
            items.append(self._value())
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
            elif self._peek() != "]":
                raise ValueError(f"',' or ']' expected at {self.pos}")


def _string_arg(segment: _Segment, index: int = 0) -> str | None:
    if len(segment.args) <= index:
        return None
    value = segment.args[index]
    return value if isinstance(value, str) else None


def _element_action(operation: str, selector: Selector, args: list[Any]) -> Action | None:
    field_name = _OPERATION_ARGUMENT.get(operation)
    if field_name is None:
        return Action(operation=operation, selector=selector)
    if not args or not isinstance(args[0], str):
        return None
    return Action(operation=operation, selector=selector, **{field_name: args[0]})


def _build_selector(chain: list[_Segment]) -> Selector | None:
    head = chain[0]
    kind = _LOCATOR_FACTORIES.get(head.name)
    if kind is None or not head.called:
        return None
    if not set(head.kwargs) <= _SELECTOR_KEYWORDS[kind]:
        return None
    value = _string_arg(head)
    if value is None:
        return None

    name = None
    exact = bool(head.kwargs.get("exact", False))
    if kind == "role":
        raw_name = head.kwargs.get("name")
        if raw_name is not None and not isinstance(raw_name, str):
            return None
        name = raw_name

    nth: int | None = None
    for segment in chain[1:]:
        if segment.kwargs:
            return None
        if segment.name == "locator" and kind == "locator" and nth is None and segment.called:
            inner = _string_arg(segment)
            if inner is None:
                return None
            value = f"{value} >> {inner}"
            continue
        if nth is not None:
            return None
        if segment.name == "first":
            nth = 0
        elif segment.name == "last":
            nth = -1
        elif segment.name == "nth" and segment.called and segment.args and isinstance(segment.args[0], int):
            nth = segment.args[0]
        else:
            return None

    return Selector(kind=kind, value=value, name=name, exact=exact, nth=nth)


def _build_action(segments: list[_Segment]) -> Action | None:
    head = segments[0]
    if segments[-1].kwargs:
        return None
    if len(segments) == 1:
        if head.name == "goto" and head.called:
            url = _string_arg(head)
            return Action.navigate(url) if url else None
        if head.name in _ELEMENT_OPERATIONS and head.called:
            raw_selector = _string_arg(head)
            if raw_selector is None:
                return None
            return _element_action(head.name, Selector(kind="locator", value=raw_selector), head.args[1:])
        return None

    if head.name == "keyboard" and not head.called:
        if len(segments) == 2 and segments[1].name == "press":
            key = _string_arg(segments[1])
            return Action(operation="press", key=key) if key else None
        return None

    *chain, final = segments
    if final.name not in _ELEMENT_OPERATIONS or not final.called:
        return None
    selector = _build_selector(chain)
    if selector is None:
        return None
    return _element_action(final.name, selector, final.args)


def _py_literal(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _render_locator(selector: Selector) -> str:
    method = _FACTORY_FOR_KIND[selector.kind]
    arguments = [_py_literal(selector.value)]
    if selector.name is not None:
        arguments.append(f"name={_py_literal(selector.name)}")
    if selector.exact:
        arguments.append("exact=True")
    text = f"page.{method}({', '.join(arguments)})"
    if selector.nth == 0:
        text += ".first"
    elif selector.nth == -1:
        text += ".last"
    elif selector.nth is not None:
        text += f".nth({selector.nth})"
    return text


def render_action(action: Action) -> str:
    """Render one action as a python-async Playwright statement."""
    if action.operation == "navigate":
        return f"await page.goto({_py_literal(action.url or '')})"
    if action.selector is None:
        return f"await page.keyboard.press({_py_literal(action.key or '')})"
    field_name = _OPERATION_ARGUMENT.get(action.operation)
    argument = ""
    if field_name is not None:
        argument = _py_literal(getattr(action, field_name) or "")
    return f"await {_render_locator(action.selector)}.{action.operation}({argument})"


def render_transcript(script: ActionScript, *, headless: bool = False) -> str:
    """Format an ActionScript back into a runnable python-async Playwright script."""
    body = "\n".join(f"    {render_action(action)}" for action in script)
    if body:
        body += "\n"
    return (
        "import asyncio\n"
        "\n"
        "from playwright.async_api import Playwright, async_playwright\n"
        "\n"
        "\n"
        "async def run(playwright: Playwright) -> None:\n"
        f"    browser = await playwright.chromium.launch(headless={headless})\n"
        "    context = await browser.new_context()\n"
        "    page = await context.new_page()\n"
        f"{body}"
        "\n"
        "    # ---------------------\n"
        "    await context.close()\n"
        "    await browser.close()\n"
        "\n"
        "\n"
        "async def main() -> None:\n"
        "    async with async_playwright() as playwright:\n"
        "        await run(playwright)\n"
        "\n"
        "\n"
        "asyncio.run(main())\n"
    )
