from __future__ import annotations

import asyncio
import logging
from typing import (
    Any,
    Callable,
    Generator,
    Generic,
    Optional,
    TypeVar,
)

import attr

from ..rest.errors import ClientException, DecodeError, StalePrecondition, TransportError
from ..rest.request import RequestDescriptor
from ..rest.requester import Handle, Requester, get_default_failure, get_default_success
from ..rest.response import Response

__all__ = ("BaseAction", "Action", "MappedAction", "FlatMappedAction", "CompletedAction")

_log = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Check = Callable[[], bool]
SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]


def _settle(
    success: Optional[SuccessCallback],
    failure: Optional[FailureCallback],
    future: Any,
) -> None:
    on_success = success or get_default_success()
    on_failure = failure or get_default_failure()

    if future.cancelled():
        error: Optional[BaseException] = asyncio.CancelledError()
    else:
        error = future.exception()

    try:
        if error is None:
            on_success(future.result())
        else:
            on_failure(error)
    except Exception:
        _log.error(
            "Encountered error while processing %s callback",
            "success" if error is None else "failure",
            exc_info=True,
        )


@attr.define(eq=False, slots=False)
class BaseAction(Generic[T]):
    """An inert unit of work, nothing happens until it is executed in
    one of these ways:

    * ``await action`` on the requester's event loop.
    * ``action.queue(on_success, on_failure)`` which schedules it and
      returns immediately.
    * ``action.submit()`` which schedules it and returns a future.
    * ``action.complete()`` which blocks the calling thread.

    Actions are templates, every execution runs them again from the
    start (re-evaluating the check and sending the request again).
    """

    requester: Requester = attr.field()
    """ The runtime the action is executed on """

    _check: Optional[Check] = attr.field(default=None, kw_only=True)

    @property
    def check(self) -> Optional[Check]:
        """The pre-flight check, if any"""
        return self._check

    def set_check(self, check: Optional[Check]) -> BaseAction[T]:
        """Attaches a check that runs right before the action is sent,
        if it returns `False` the action fails with
        `lazycord.rest.errors.StalePrecondition` and nothing is sent.
        Passing `None` removes the check.

        Parameters
        ----------
        check : typing.Optional[typing.Callable[[], builtins.bool]]
            A side-effect free predicate.

        Returns
        -------
        lazycord.actions.action.BaseAction
            The same action, can be used for chaining.
        """

        self._check = check
        return self

    async def _execute(self) -> T:
        raise NotImplementedError

    async def _run(self) -> T:
        if self._check is not None and not self._check():
            raise StalePrecondition(
                f"check of {type(self).__name__} failed before dispatch"
            )
        return await self._execute()

    def __await__(self) -> Generator[Any, None, T]:
        return self._run().__await__()

    def submit(self) -> Handle[T]:
        """Schedules the action and returns a future for its result.
        Cancelling the future before the action started guarantees that
        no request is sent, afterwards it only stops the result from
        being delivered.

        Returns
        -------
        typing.Union[asyncio.Task, concurrent.futures.Future]
            An `asyncio.Task` when called on the event loop's thread, a
            thread-safe `concurrent.futures.Future` otherwise.
        """

        return self.requester.submit(self._run)

    def queue(
        self,
        success: Optional[SuccessCallback] = None,
        failure: Optional[FailureCallback] = None,
    ) -> Handle[T]:
        """Schedules the action without blocking, exactly one of the
        callbacks is invoked once it settles. Missing callbacks fall back
        to the process wide defaults (see
        `lazycord.rest.requester.set_default_failure`), so errors are
        never dropped. Cancellation is reported to `failure` as an
        `asyncio.CancelledError`.

        Callbacks run on the event loop's thread.
        """

        handle = self.submit()
        handle.add_done_callback(lambda future: _settle(success, failure, future))
        return handle

    def complete(self, timeout: Optional[float] = None) -> T:
        """Executes the action and blocks until it settles.

        Do not call this from a callback or coroutine running on the
        requester's event loop, the loop would wait on itself; this is
        detected and raises `lazycord.rest.errors.BlockingCallError`.

        Parameters
        ----------
        timeout : typing.Optional[builtins.float]
            Seconds to wait before giving up with a `TimeoutError`.

        Returns
        -------
        T
            The result of the action.
        """

        return self.requester.block(self._run, timeout)

    def map(self, function: Callable[[T], U]) -> MappedAction[T, U]:
        """Returns an action that passes the result through `function`,
        the request itself is still only sent once per execution.
        """

        return MappedAction(self.requester, self, function)

    def flat_map(self, function: Callable[[T], BaseAction[U]]) -> FlatMappedAction[T, U]:
        """Returns an action that runs this one and then the action
        `function` builds from its result.
        """

        return FlatMappedAction(self.requester, self, function)


@attr.define(eq=False, slots=False)
class Action(BaseAction[T]):
    """An action backed by exactly one HTTP request."""

    request: RequestDescriptor = attr.field()
    """ What is sent to discord """

    transformer: Optional[Callable[[Response], T]] = attr.field(default=None)
    """ Turns the response into the result, without one the result is `None` """

    def _finalize_request(self) -> RequestDescriptor:
        return self.request

    async def _send(self, request: RequestDescriptor) -> Response:
        route = request.route
        _log.debug("Dispatching %s %s", route.method, route.compiled_path)
        try:
            return await self.requester.execute(request)
        except ClientException:
            raise
        except (OSError, asyncio.TimeoutError) as exc:
            raise TransportError(
                f"{route.method} {route.compiled_path} failed: {exc!r}"
            ) from exc

    def _handle_response(self, response: Response) -> T:
        if self.transformer is None:
            return None  # type: ignore[return-value]

        try:
            return self.transformer(response)
        except Exception as exc:
            raise DecodeError(
                f"could not decode response of {self.request.route.method} "
                f"{self.request.route.path}: {exc!r}"
            ) from exc

    async def _execute(self) -> T:
        response = await self._send(self._finalize_request())
        return self._handle_response(response)


@attr.define(eq=False, slots=False)
class MappedAction(BaseAction[U], Generic[T, U]):
    action: BaseAction[T] = attr.field()
    function: Callable[[T], U] = attr.field()

    async def _execute(self) -> U:
        return self.function(await self.action._run())


@attr.define(eq=False, slots=False)
class FlatMappedAction(BaseAction[U], Generic[T, U]):
    action: BaseAction[T] = attr.field()
    function: Callable[[T], BaseAction[U]] = attr.field()

    async def _execute(self) -> U:
        then = self.function(await self.action._run())
        if then is None:
            raise TypeError("flat_map function returned None instead of an action")
        return await then._run()


@attr.define(eq=False, slots=False)
class CompletedAction(BaseAction[T]):
    """An action whose outcome is already known, executing it never
    touches the transport.
    """

    value: Optional[T] = attr.field(default=None)
    error: Optional[BaseException] = attr.field(default=None)

    async def _execute(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
