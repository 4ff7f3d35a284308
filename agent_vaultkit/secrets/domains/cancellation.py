"""Run blocking Vault and filesystem calls bounded by a cancellation signal."""
import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from .errors import FetchCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THREAD_PREFIX = "vaultkit-call"


def _settle(future: asyncio.Future, result: Any, error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _start_call(loop: asyncio.AbstractEventLoop, func: Callable[..., T], args: tuple, name: str) -> asyncio.Future:
    """
    Run func(*args) on its own daemon thread and return a future for it.

    The loop's default executor is not used: asyncio.run joins that
    executor on shutdown, which would hold the caller until an abandoned
    request finished.
    """
    future = loop.create_future()

    def worker():
        result, error = None, None
        try:
            result = func(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            # Loop closed after the call was abandoned
            logger.debug(f"Dropped result of abandoned call {name}")

    threading.Thread(target=worker, name=f"{THREAD_PREFIX}-{name}", daemon=True).start()
    return future


async def run_cancellable(
    func: Callable[..., T],
    *args: Any,
    cancel: Optional[asyncio.Event] = None,
    on_cancel: Optional[Callable[[], None]] = None,
) -> T:
    """
    Run a blocking call on a worker thread.

    Args:
        func: Blocking callable (an hvac request, a file read)
        *args: Positional arguments for func
        cancel: Caller-supplied signal; when set, the call is abandoned
        on_cancel: Hook run after cancellation to break the abandoned call,
            e.g. shutting down the socket it is blocked on

    Returns:
        Whatever func returns

    Raises:
        FetchCancelledError: If cancel is set before or while the call runs
    """
    name = getattr(func, "__name__", repr(func))
    if cancel is not None and cancel.is_set():
        raise FetchCancelledError(f"cancelled before {name}")

    call = _start_call(asyncio.get_running_loop(), func, args, name)
    waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
    try:
        if waiter is None:
            return await call
        done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        call.cancel()
        if on_cancel is not None:
            on_cancel()
        raise
    finally:
        if waiter is not None:
            waiter.cancel()

    if call in done:
        return call.result()

    call.cancel()
    logger.info(f"Cancellation signalled while waiting on {name}")
    if on_cancel is not None:
        on_cancel()
    raise FetchCancelledError(f"cancelled while waiting on {name}")
