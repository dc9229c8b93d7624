"""Blocking calls awaited from the event loop on daemon threads.

asyncio.to_thread runs on the loop's default executor, and asyncio.run joins
that executor on shutdown. A cancelled run would then sit out every in-flight
HTTP request. Work started here is abandoned on cancellation instead: the
awaiting task unwinds at once and the late outcome is dropped.
"""

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


async def run_detached(func, *args, name: str | None = None):
    """Await func(*args) executed on a daemon thread."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker():
        result = error = None
        try:
            result = func(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, result, error)
        except RuntimeError:
            # Loop already closed: the awaiting run was cancelled.
            logger.debug("%s finished after event loop closed", threading.current_thread().name)

    threading.Thread(target=worker, name=name, daemon=True).start()
    return await future
