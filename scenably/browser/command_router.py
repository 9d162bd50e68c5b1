"""Dispatch ActionScript actions onto browser action primitives."""

import logging

from scenably.errors import ActionFailure
from scenably.recorder.script import OPERATIONS, PAGE_LEVEL_OPERATIONS, Action

from .actions import BrowserActions

logger = logging.getLogger("scenably.browser.command_router")


class CommandRouter:
    """
    Deterministic dispatcher from Action to BrowserActions call.
    """

    def __init__(self, actions: BrowserActions):
        self._actions = actions

    async def execute(self, action: Action) -> None:
        """
        Execute one action.

        Raises:
            ActionFailure for actions outside the vocabulary
            playwright errors for failed interactions
        """
        self._validate(action)
        operation = action.operation
        selector = action.selector
        logger.info("Executing action: %s", action.describe())

        if operation == "navigate":
            await self._actions.navigate(action.url)
        elif operation == "click":
            await self._actions.click(selector)
        elif operation == "dblclick":
            await self._actions.dblclick(selector)
        elif operation == "fill":
            await self._actions.fill(selector, action.value)
        elif operation == "press":
            await self._actions.press(selector, action.key)
        elif operation == "check":
            await self._actions.check(selector)
        elif operation == "uncheck":
            await self._actions.uncheck(selector)
        elif operation == "select_option":
            await self._actions.select_option(selector, action.value)
        elif operation == "hover":
            await self._actions.hover(selector)
        elif operation == "focus":
            await self._actions.focus(selector)

    def _validate(self, action: Action) -> None:
        if not isinstance(action, Action):
            raise ActionFailure("action must be Action")
        if action.operation not in OPERATIONS:
            raise ActionFailure(f"Unsupported operation: {action.operation}", operation=action.operation)
        if action.selector is None and action.operation not in PAGE_LEVEL_OPERATIONS:
            raise ActionFailure(f"{action.operation} requires a selector", operation=action.operation)
