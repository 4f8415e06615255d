"""Repository helpers for claimflow collaborators.

Provides a resolve() helper that transparently handles both sync
(in-memory) and async (remote) store returns.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, TypeVar

T = TypeVar("T")


async def resolve(value: T | Awaitable[T]) -> T:
    """Await a value if it is a coroutine, otherwise return it directly.

    This allows the controller to call collaborator methods uniformly:
        result = await resolve(store.save_draft(draft))

    In-memory stores return plain values; remote stores return coroutines.
    """
    if inspect.isawaitable(value):
        return await value  # type: ignore[return-value]
    return value  # type: ignore[return-value]
