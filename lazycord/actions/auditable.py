from __future__ import annotations

import contextlib
import contextvars
from typing import Final, Iterator, Optional, TypeVar

import attr

from ..rest.errors import ValidationError
from ..rest.request import RequestDescriptor
from .action import Action

__all__ = ("AuditableAction", "audit_reason", "current_reason", "MAX_REASON_LENGTH")

T = TypeVar("T")

MAX_REASON_LENGTH: Final[int] = 512

_current_reason: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "lazycord_audit_reason", default=None
)


def _check_reason(reason: Optional[str]) -> None:
    if reason is not None and len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(
            f"Reason cannot be longer than {MAX_REASON_LENGTH} characters, "
            f"got {len(reason)}"
        )


def current_reason() -> Optional[str]:
    """The reason set by the innermost `audit_reason` block, if any"""
    return _current_reason.get()


@contextlib.contextmanager
def audit_reason(reason: Optional[str]) -> Iterator[None]:
    """Sets the audit log reason for every auditable action executed
    inside the block that does not have an explicit reason.

    .. code-block:: python

        with audit_reason("spam"):
            await guild.kick(member)
            await guild.ban(other)

    The reason is picked up when the action is executed (awaited,
    queued, submitted or completed), not when it is built.
    """

    _check_reason(reason)
    token = _current_reason.set(reason)
    try:
        yield
    finally:
        _current_reason.reset(token)


@attr.define(eq=False, slots=False)
class AuditableAction(Action[T]):
    """An action whose effect shows up in the guild's audit log, a
    reason can be attached that is displayed along with it.
    """

    _reason: Optional[str] = attr.field(default=None, init=False)

    def reason(self, reason: Optional[str]) -> AuditableAction[T]:
        """Sets the audit log reason, `None` clears it.

        Parameters
        ----------
        reason : typing.Optional[builtins.str]
            At most 512 characters.

        Raises
        ------
        lazycord.rest.errors.ValidationError
            The reason is too long.

        Returns
        -------
        lazycord.actions.auditable.AuditableAction
            The same action, can be used for chaining.
        """

        _check_reason(reason)
        self._reason = reason
        return self

    def _finalize_request(self) -> RequestDescriptor:
        request = super()._finalize_request()
        reason = self._reason if self._reason is not None else current_reason()
        if reason is not None:
            return request.with_reason(reason)
        return request
