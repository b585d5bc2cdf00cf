"""Lifecycle hook dispatch for resources.

Lifecycle events ("get", "collection:get", "post", "put", "patch",
"delete", "collection:patch", "collection:delete") are dispatched to the
``before`` handlers registered for them. Plain notifications go through the
inherited ``on``/``emit`` listener API.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from doc_query.core.events import EventEmitter

logger = logging.getLogger(__name__)

Hook = Callable[..., Awaitable[Any]]

LIFECYCLE_EVENTS = (
    "get",
    "collection:get",
    "post",
    "put",
    "patch",
    "delete",
    "collection:patch",
    "collection:delete",
)


class HookRegistry(EventEmitter):
    """Listener registry plus awaitable before-hooks."""

    def __init__(self) -> None:
        super().__init__()
        self._hooks: dict[str, list[Hook]] = {}

    def before(self, event: str, hook: Hook) -> HookRegistry:
        self._hooks.setdefault(event, []).append(hook)
        return self

    def hooks(self, event: str) -> list[Hook]:
        return list(self._hooks.get(event, []))

    async def run(self, event: str, *args: Any) -> Any:
        """Run the before-hooks for *event* in registration order.

        Each hook is called with *args*. The first hook returning a value
        other than None ends the dispatch and that value is returned. A hook
        that raises propagates its error to the caller.
        """
        for hook in self.hooks(event):
            result = await hook(*args)
            if result is not None:
                return result
        logger.debug("No hook produced a result for %s", event)
        return None
