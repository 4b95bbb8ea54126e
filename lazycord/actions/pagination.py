from __future__ import annotations

import asyncio
import collections
import enum
import logging
from typing import (
    AsyncIterator,
    Callable,
    Deque,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

import attr

from .. import checks
from ..rest.errors import ValidationError
from ..rest.request import RequestDescriptor
from ..rest.requester import Handle
from .action import Action

__all__ = ("PaginationOrder", "CursorState", "PaginationCursor", "PaginationAction")

_log = logging.getLogger(__name__)

T = TypeVar("T")


class PaginationOrder(enum.Enum):
    """Direction of the pages, the value is the query parameter that
    carries the boundary.
    """

    FORWARD = "after"
    BACKWARD = "before"
    AROUND = "around"


class CursorState(enum.Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    EXHAUSTED = "exhausted"


@attr.define(eq=False)
class PaginationCursor:
    """Mutable position of a pagination action.

    The boundary only moves in the direction of the pagination and the
    cursor never leaves the exhausted state. Items created or deleted on
    discord's side while paginating may be skipped or show up twice.
    """

    limit: int = attr.field()
    """ Page size """

    min_limit: int = attr.field(default=1)
    max_limit: int = attr.field(default=100)

    order: PaginationOrder = attr.field(default=PaginationOrder.BACKWARD)

    last_key: Optional[int] = attr.field(default=None)
    """ Key of the last item retrieved, the boundary of the next page """

    initial_key: Optional[int] = attr.field(default=None)
    """ The boundary the cursor started from """

    exhausted: bool = attr.field(default=False)
    """ Set once a page came back shorter than requested """

    pages: int = attr.field(default=0)
    """ Number of pages retrieved so far """

    lock: asyncio.Lock = attr.field(factory=asyncio.Lock, repr=False)
    """ Serializes page fetches, each one depends on the previous boundary """

    @property
    def state(self) -> CursorState:
        if self.exhausted:
            return CursorState.EXHAUSTED
        if self.pages == 0:
            return CursorState.NOT_STARTED
        return CursorState.IN_PROGRESS

    def set_limit(self, limit: int) -> None:
        checks.check_range(limit, self.min_limit, self.max_limit, "Limit")
        self.limit = limit

    def advance(self, keys: Sequence[int]) -> None:
        """Moves the boundary past a page that was just retrieved.

        Endpoints do not agree on the order items come back in (message
        history is newest first even for `after`), so the boundary is the
        furthest key in the direction of the pagination.
        """

        self.pages += 1
        if keys:
            if self.order is PaginationOrder.FORWARD:
                self.last_key = max(keys)
            else:
                self.last_key = min(keys)
        if len(keys) < self.limit or self.order is PaginationOrder.AROUND:
            self.exhausted = True


@attr.define(eq=False, slots=False, kw_only=True)
class PaginationAction(Action[List[T]]):
    """Iterates an endpoint page by page.

    Executing the action (or the one returned by `fetch_next`) retrieves
    the next page and advances the cursor. The action can also be
    iterated, with ``async for`` on the event loop or a plain ``for``
    from another thread (which blocks on every page):

    .. code-block:: python

        async for message in channel.iter_history().limit(50):
            ...

    Iterating continues from wherever the previous iteration stopped,
    items of a page that were not consumed yet are handed out first. Use
    `fresh` for an independent pass from the start.
    """

    key: Callable[[T], int] = attr.field()
    """ Identity of an item, used as the boundary """

    min_limit: int = attr.field(default=1)
    max_limit: int = attr.field(default=100)
    default_limit: int = attr.field(default=100)

    orders: Tuple[PaginationOrder, ...] = attr.field(default=(PaginationOrder.BACKWARD,))
    """ Orders the endpoint supports, the first one is the default """

    cursor: PaginationCursor = attr.field(init=False)
    cached: List[T] = attr.field(init=False, factory=list)
    """ Every item retrieved so far, in the order they arrived """

    pending: Deque[T] = attr.field(init=False, factory=collections.deque, repr=False)
    """ Items of retrieved pages that iteration has not handed out yet """

    def __attrs_post_init__(self) -> None:
        self.cursor = PaginationCursor(
            limit=self.default_limit,
            min_limit=self.min_limit,
            max_limit=self.max_limit,
            order=self.orders[0],
        )

    def _check_not_started(self, what: str) -> None:
        if self.cursor.state is not CursorState.NOT_STARTED:
            raise ValidationError(f"Cannot change the {what} after pagination started")

    def limit(self, limit: int) -> PaginationAction[T]:
        """Sets the page size.

        Raises
        ------
        lazycord.rest.errors.ValidationError
            `limit` is outside of the endpoint's bounds (usually 1-100).
        """

        self.cursor.set_limit(limit)
        return self

    def order(self, order: PaginationOrder) -> PaginationAction[T]:
        """Sets the direction, only before the first page was retrieved"""

        if order not in self.orders:
            raise ValidationError(
                f"This endpoint does not support {order.name} pagination"
            )
        self._check_not_started("order")
        if order is PaginationOrder.AROUND and self.cursor.last_key is None:
            raise ValidationError("AROUND pagination needs a key, use skip_to first")
        self.cursor.order = order
        return self

    def skip_to(self, key: int) -> PaginationAction[T]:
        """Starts the pagination at `key` instead of the endpoint's
        default starting point.
        """

        self._check_not_started("starting point")
        checks.check(key >= 0, "Key must not be negative")
        self.cursor.last_key = key
        self.cursor.initial_key = key
        return self

    def around(self, key: int) -> PaginationAction[T]:
        """Shortcut for a single page centered on `key`"""

        self.skip_to(key)
        return self.order(PaginationOrder.AROUND)

    @property
    def first(self) -> Optional[T]:
        return self.cached[0] if self.cached else None

    @property
    def last(self) -> Optional[T]:
        return self.cached[-1] if self.cached else None

    @property
    def is_exhausted(self) -> bool:
        return self.cursor.exhausted

    def fetch_next(self) -> PaginationAction[T]:
        """The action retrieving the next page, pagination actions are
        their own fetch-next action so this returns `self`. On an
        exhausted cursor it settles with an empty list without sending
        anything.
        Pages retrieved this way bypass the items iteration still has
        pending.
        """

        return self

    def fresh(self) -> PaginationAction[T]:
        """A new pagination action over the same endpoint, starting over
        from this action's original boundary with its own cursor.
        """

        action: PaginationAction[T] = PaginationAction(
            requester=self.requester,
            request=self.request,
            transformer=self.transformer,
            check=self._check,
            key=self.key,
            min_limit=self.min_limit,
            max_limit=self.max_limit,
            default_limit=self.cursor.limit,
            orders=self.orders,
        )
        action.cursor.order = self.cursor.order
        action.cursor.last_key = self.cursor.initial_key
        action.cursor.initial_key = self.cursor.initial_key
        return action

    def _finalize_request(self) -> RequestDescriptor:
        cursor = self.cursor
        route = self.request.route.with_query(
            limit=cursor.limit, **{cursor.order.value: cursor.last_key}
        )
        return self.request.with_route(route)

    async def _execute(self) -> List[T]:
        async with self.cursor.lock:
            if self.cursor.exhausted:
                return []

            response = await self._send(self._finalize_request())
            items = self._handle_response(response) or []

            self.cursor.advance([self.key(item) for item in items])
            self.cached.extend(items)
            _log.debug(
                "Retrieved page %d with %d items, boundary is now %s",
                self.cursor.pages,
                len(items),
                self.cursor.last_key,
            )
            return items

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            if self.pending:
                yield self.pending.popleft()
            elif self.cursor.exhausted:
                return
            else:
                self.pending.extend(await self._run())

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    def __iter__(self) -> Iterator[T]:
        while True:
            if self.pending:
                yield self.pending.popleft()
            elif self.cursor.exhausted:
                return
            else:
                self.pending.extend(self.complete())

    async def take(self, amount: int) -> List[T]:
        """Retrieves up to `amount` items, stopping early when the
        endpoint runs out. Items of the last page beyond `amount` stay
        pending and are the first ones the next iteration hands out.
        """

        checks.check(amount > 0, "Amount must be positive")
        items: List[T] = []
        async for item in self:
            items.append(item)
            if len(items) >= amount:
                break
        return items

    async def for_each(self, predicate: Callable[[T], bool]) -> int:
        """Calls `predicate` for every item until it returns `False` or
        the endpoint runs out.

        Returns
        -------
        builtins.int
            The number of items the predicate was called with.
        """

        count = 0
        async for item in self:
            count += 1
            if not predicate(item):
                break
        return count

    def take_async(self, amount: int) -> Handle[List[T]]:
        """Schedules `take` without blocking and returns a future"""

        checks.check(amount > 0, "Amount must be positive")
        return self.requester.submit(lambda: self.take(amount))

    def for_each_async(self, predicate: Callable[[T], bool]) -> Handle[int]:
        """Schedules `for_each` without blocking and returns a future"""

        return self.requester.submit(lambda: self.for_each(predicate))
