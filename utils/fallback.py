"""Combinators for best-effort strategy chains."""

import inspect
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Union

Strategy = Callable[[], Union[Any, Awaitable[Any]]]


async def _call(strategy: Strategy) -> Any:
    result = strategy()
    if inspect.isawaitable(result):
        result = await result
    return result


async def first_non_null(strategies: Iterable[Strategy]) -> Optional[Any]:
    """
    Run strategies in order and return the first result that is not None.

    Later strategies are never invoked once one succeeds. Strategies
    return None for an expected negative; exceptions propagate.
    """
    for strategy in strategies:
        result = await _call(strategy)
        if result is not None:
            return result
    return None


async def first_non_empty(strategies: Iterable[Strategy]) -> Sequence[Any]:
    """Like first_non_null, but an empty sequence also counts as a miss."""
    for strategy in strategies:
        result = await _call(strategy)
        if result:
            return result
    return []
