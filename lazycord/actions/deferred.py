from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

import attr

from .action import BaseAction

__all__ = ("DeferredAction",)

_log = logging.getLogger(__name__)

T = TypeVar("T")


@attr.define(eq=False, slots=False)
class DeferredAction(BaseAction[T]):
    """Resolves from local state when possible and only falls back to
    a request when it has to.

    Every execution calls `probe` exactly once. A value other than
    `None` is the result and nothing else happens; `None` means the
    value is not known locally, `fallback` is then called to build the
    action that fetches it. Exceptions raised by the probe fail the
    execution, they are not treated as a miss.
    """

    probe: Callable[[], Optional[T]] = attr.field()
    """ Looks the value up in the cache """

    fallback: Callable[[], BaseAction[T]] = attr.field()
    """ Builds the action used when the probe misses """

    async def _execute(self) -> T:
        value = self.probe()
        if value is not None:
            return value

        _log.debug("Cache miss, falling back to %s", self.fallback)
        return await self.fallback()._run()
