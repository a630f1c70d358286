"""Atomic execution scope over in-memory collaborators."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, List

from pairvault.protocols.base import TransactionScope

logger = logging.getLogger(__name__)


class SandboxComponent(ABC):
    """In-memory collaborator whose state can be captured and restored."""

    @abstractmethod
    def snapshot(self) -> Any:
        """Return a copy of the mutable state."""
        ...

    @abstractmethod
    def restore(self, state: Any) -> None:
        """Put back a state returned by snapshot()."""
        ...


class SandboxChain(TransactionScope):
    """
    All-or-nothing scope for sandbox components.

    atomic() captures every registered component on entry and restores all
    of them if the block raises, the way a reverted transaction leaves no
    trace on chain.
    """

    def __init__(self, *components: SandboxComponent):
        self.components: List[SandboxComponent] = list(components)
        self.reverts = 0

    def register(self, component: SandboxComponent) -> None:
        self.components.append(component)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        states = [component.snapshot() for component in self.components]
        try:
            yield
        except BaseException as e:
            for component, state in zip(self.components, states):
                component.restore(state)
            self.reverts += 1
            logger.debug(f"Sandbox transaction reverted: {e!r}")
            raise
