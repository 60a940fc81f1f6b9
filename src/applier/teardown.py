"""Deferred teardown of applied resources.

A TeardownRegistry is a stack of cleanup actions owned by one test scope.
Actions are pushed as resources are applied and drained in reverse order
(last created, first deleted) when the scope ends. Every action runs exactly
once; a failing action is logged and recorded but does not stop the rest.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from common import TeardownFailedError

logger = logging.getLogger(__name__)


@dataclass
class TeardownAction:
    """A named deferred cleanup step."""
    name: str
    func: Callable[[], None]

    def __call__(self) -> None:
        self.func()


class TeardownRegistry:
    """Stack of teardown actions, safe for concurrent registration."""

    def __init__(self):
        self._lock = threading.Lock()
        self._actions: list[TeardownAction] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    @property
    def pending(self) -> list[str]:
        """Names of registered actions in execution order."""
        with self._lock:
            return [a.name for a in reversed(self._actions)]

    def register(self, name: str, func: Callable[[], None]) -> TeardownAction:
        """Push a cleanup action."""
        action = TeardownAction(name=name, func=func)
        with self._lock:
            self._actions.append(action)
        return action

    def _pop(self):
        with self._lock:
            if not self._actions:
                return None
            return self._actions.pop()

    def run_all(self, raise_errors: bool = True) -> list[tuple[str, Exception]]:
        """Run and remove all registered actions, newest first.

        Args:
            raise_errors: Raise TeardownFailedError after all actions ran
                if any of them failed

        Returns:
            (action name, exception) for each failed action
        """
        failures: list[tuple[str, Exception]] = []
        while (action := self._pop()) is not None:
            try:
                action()
            except Exception as e:
                logger.error(f"Teardown '{action.name}' failed: {e}")
                failures.append((action.name, e))

        if failures and raise_errors:
            raise TeardownFailedError(failures)
        return failures
