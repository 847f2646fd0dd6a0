"""Async helpers for Celery tasks.

Celery tasks run in a synchronous context; the services they call are async.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run an async coroutine from a Celery task.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        logger.debug("No event loop exists, creating new loop")
        return asyncio.run(coro)

    if loop.is_closed():
        logger.debug("Event loop is closed, creating new loop")
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    if loop.is_running():
        logger.warning("Event loop is already running, creating new loop in thread")
        result = None
        exception = None

        def run_in_thread():
            nonlocal result, exception
            new_loop = asyncio.new_event_loop()
            try:
                result = new_loop.run_until_complete(coro)
            except Exception as e:
                exception = e
            finally:
                new_loop.close()

        thread = threading.Thread(target=run_in_thread)
        thread.start()
        thread.join()

        if exception:
            raise exception
        return result

    return loop.run_until_complete(coro)
