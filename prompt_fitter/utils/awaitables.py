"""Helpers for collaborators that may be synchronous or asynchronous."""

import inspect
from typing import Awaitable, TypeVar, Union

T = TypeVar("T")


async def maybe_await(value: Union[T, Awaitable[T]]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
