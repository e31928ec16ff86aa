"""
pianissimo.database.engine — Async Bridge for Blocking Storage
===============================================================

**Why this file exists:**
The bot and the API share one ``asyncio`` event loop.  The document store
does plain blocking file I/O (read, write temp file, ``fsync``, rename) —
if we call it directly from a coroutine, every spin, slash command and
WebSocket stalls until the disk returns.

So storage calls cross into a worker thread:

    1. A spin request arrives  (async world).
    2. The service calls ``await run_io(store.append_history, record)``.
    3. ``run_io`` ships the synchronous call to the default thread pool via
       ``asyncio.to_thread()``.
    4. The write happens off-loop; the store's own lock serializes writers.
    5. The result is awaited back in the service.

Usage::

    from pianissimo.database.engine import run_io

    doc = await run_io(store.mutate_config, set_cost)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import ParamSpec, TypeVar

P = ParamSpec("P")
T = TypeVar("T")


async def run_io(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** storage function on a background thread.

    Parameters
    ----------
    func:
        Any sync callable (typically a :class:`DocumentStore` method).
    *args, **kwargs:
        Forwarded to *func*.

    Returns
    -------
    T
        Whatever *func* returns.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
