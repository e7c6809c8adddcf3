"""Cooperative cancellation for the in-flight cycle."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterable, AsyncIterator, Awaitable
from typing import TypeVar

from toolstream.errors import RequestCanceled

T = TypeVar("T")


class CancellationToken:
    """One-shot flag the controller hands to every suspension point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """Await *awaitable* unless *token* fires first.

    On cancellation the pending work is cancelled and awaited, then
    :class:`RequestCanceled` is raised.
    """
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCanceled("request canceled")
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()
    if not work.done():
        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        raise RequestCanceled("request canceled")
    return work.result()


async def _next(iterator: AsyncIterator[T]) -> T:
    return await iterator.__anext__()


async def guarded(
    source: AsyncIterable[T], token: CancellationToken,
) -> AsyncIterator[T]:
    """Yield from *source*, racing every read against *token*.

    When the token fires first the pending read is abandoned, *source*
    is closed (which aborts its transport) and :class:`RequestCanceled`
    is raised.
    """
    iterator = source.__aiter__()
    abandoned = False
    try:
        while True:
            try:
                item = await run_cancellable(_next(iterator), token)
            except StopAsyncIteration:
                return
            except asyncio.CancelledError:
                # The read is still unwinding and owns the iterator.
                abandoned = True
                raise
            yield item
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None and not abandoned:
            await aclose()
