"""Bounded calls to external model collaborators.

Embedding and narrative models are slow and fallible.  Every call goes
through :func:`call_collaborator`, which applies a timeout and turns any
failure into a :class:`CollaboratorResult` the caller branches on.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable

from intelgraph.exceptions import CollaboratorError, CollaboratorTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CollaboratorResult(Generic[T]):
    """Outcome of one collaborator call: exactly one of *value* / *error* is set."""

    value: T | None = None
    error: CollaboratorError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def call_collaborator(
    fn: Callable[..., Any],
    *args: Any,
    timeout: float,
    name: str = "collaborator",
) -> CollaboratorResult[Any]:
    """Invoke *fn* (sync or async) with a deadline; never raises.

    Sync callables run in the default executor so a blocking client
    cannot stall the event loop past the deadline.
    """
    try:
        if inspect.iscoroutinefunction(fn):
            value = await asyncio.wait_for(fn(*args), timeout)
        else:
            loop = asyncio.get_running_loop()
            value = await asyncio.wait_for(loop.run_in_executor(None, lambda: fn(*args)), timeout)
            if inspect.isawaitable(value):
                value = await asyncio.wait_for(value, timeout)
    except TimeoutError:
        logger.warning("%s timed out after %.1fs", name, timeout)
        msg = f"{name} timed out after {timeout}s"
        return CollaboratorResult(error=CollaboratorTimeoutError(msg))
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("%s failed", name, exc_info=True)
        err = CollaboratorError(f"{name} failed: {type(exc).__name__}")
        err.__cause__ = exc
        return CollaboratorResult(error=err)
    return CollaboratorResult(value=value)


PathTriple = tuple[str, str, str]
"""``(source label, edge type, target label)``."""


@runtime_checkable
class NarrativeProvider(Protocol):
    """Turns a path into a natural-language explanation."""

    async def explain(self, triples: Sequence[PathTriple]) -> str:
        """Return a short narrative describing the chain of *triples*."""
        ...
