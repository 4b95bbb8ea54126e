import asyncio
import concurrent.futures
import contextvars
import logging
from typing import Any, Awaitable, Callable, Coroutine, List, Optional, Protocol, TypeVar, Union

import attr

from .errors import BlockingCallError
from .request import RequestDescriptor
from .response import Response

__all__ = (
    "Transport",
    "Requester",
    "set_default_success",
    "set_default_failure",
    "get_default_success",
    "get_default_failure",
)

_log = logging.getLogger(__name__)

T = TypeVar("T")

Handle = Union["asyncio.Future[T]", "concurrent.futures.Future[T]"]


class Transport(Protocol):
    """Anything that can send a request descriptor, `RESTClient` being
    the one the library ships with.
    """

    def execute(self, request: RequestDescriptor) -> Awaitable[Response]:
        ...


def _default_success(result: Any) -> None:
    pass


def _default_failure(error: BaseException) -> None:
    if isinstance(error, asyncio.CancelledError):
        _log.debug("Action was cancelled")
        return

    _log.error(
        "Action failed and no failure callback was given",
        exc_info=(type(error), error, error.__traceback__),
    )


_handlers = {"success": _default_success, "failure": _default_failure}


def set_default_success(handler: Optional[Callable[[Any], None]]) -> None:
    """Replaces the process wide callback used by `queue()` when no
    success callback is passed, `None` restores the no-op default.
    """

    _handlers["success"] = handler or _default_success


def set_default_failure(handler: Optional[Callable[[BaseException], None]]) -> None:
    """Replaces the process wide callback used by `queue()` when no
    failure callback is passed, `None` restores the default which logs
    the error along with its traceback.
    """

    _handlers["failure"] = handler or _default_failure


def get_default_success() -> Callable[[Any], None]:
    return _handlers["success"]


def get_default_failure() -> Callable[[BaseException], None]:
    return _handlers["failure"]


async def _in_context(
    context: contextvars.Context,
    factory: Callable[[], Coroutine[Any, Any, T]],
    handle: List["concurrent.futures.Future[T]"],
) -> T:
    # the handle was cancelled before the loop got to it
    if handle and handle[0].cancelled():
        raise asyncio.CancelledError()

    # the task running this has its own copy of the loop thread's context
    for var, value in context.items():
        var.set(value)
    return await factory()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@attr.define
class Requester:
    """The runtime actions are executed on, it pairs a transport with
    the event loop the transport lives on.

    When `loop` is not given the loop running at call time is used, in
    that case `complete()` outside of any loop runs the action in a
    fresh `asyncio.run`.
    """

    transport: Transport = attr.field()
    """ Whatever sends the requests, normally a `RESTClient` """

    loop: Optional[asyncio.AbstractEventLoop] = attr.field(default=None)
    """ The event loop that the transport is bound to """

    def execute(self, request: RequestDescriptor) -> Awaitable[Response]:
        return self.transport.execute(request)

    def _target(self) -> asyncio.AbstractEventLoop:
        loop = self.loop or _running_loop()
        if loop is None:
            raise RuntimeError(
                "no event loop to schedule on, pass one to the Requester"
            )
        return loop

    def submit(self, factory: Callable[[], Coroutine[Any, Any, T]]) -> "Handle[T]":
        """Schedules the coroutine made by `factory` on the loop without
        waiting for it.

        Returns
        -------
        typing.Union[asyncio.Future, concurrent.futures.Future]
            An `asyncio.Task` when called from the loop's own thread,
            a `concurrent.futures.Future` otherwise.
        """

        loop = self._target()
        if _running_loop() is loop:
            return loop.create_task(factory())
        return self._submit_threadsafe(factory, loop)

    def _submit_threadsafe(
        self,
        factory: Callable[[], Coroutine[Any, Any, T]],
        loop: asyncio.AbstractEventLoop,
    ) -> "concurrent.futures.Future[T]":
        handle: List["concurrent.futures.Future[T]"] = []
        future = asyncio.run_coroutine_threadsafe(
            _in_context(contextvars.copy_context(), factory, handle), loop
        )
        handle.append(future)
        return future

    def block(
        self, factory: Callable[[], Coroutine[Any, Any, T]], timeout: Optional[float] = None
    ) -> T:
        """Runs the coroutine made by `factory` and waits for it on the
        calling thread.

        Raises
        ------
        lazycord.rest.errors.BlockingCallError
            When called from the thread running the loop, the loop would
            have to finish the coroutine while being blocked by it.
        """

        running = _running_loop()
        if running is not None and (self.loop is None or running is self.loop):
            raise BlockingCallError(
                "complete() cannot be called from within the event loop, "
                "await the action instead"
            )

        if self.loop is None:
            return asyncio.run(asyncio.wait_for(factory(), timeout))

        future = self._submit_threadsafe(factory, self.loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise
