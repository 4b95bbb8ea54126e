""" Validators that run while an action is being built. They only look
at cached state, never send anything and raise right away so mistakes
surface at the call site instead of after a round trip to discord.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sized, Union

from .permissions import Permission, effective_permissions
from .rest.errors import HierarchyError, MissingPermission, ValidationError

if TYPE_CHECKING:
    from .entities.channel import GuildChannel
    from .entities.guild import Member, Role

__all__ = (
    "check",
    "check_not_none",
    "check_range",
    "check_length",
    "check_same_guild",
    "has_permission",
    "check_permission",
    "can_interact",
    "check_hierarchy",
)


def check(condition: bool, message: str, *args: Any) -> None:
    """Raises `ValidationError` with `message % args` unless `condition`"""

    if not condition:
        raise ValidationError(message % args if args else message)


def check_not_none(value: Any, name: str) -> None:
    check(value is not None, "%s may not be None", name)


def check_range(value: int, low: int, high: int, name: str) -> None:
    """Both ends are inclusive"""

    check(
        low <= value <= high,
        "%s must be between %d and %d, provided: %d",
        name,
        low,
        high,
        value,
    )


def check_length(value: Sized, maximum: int, name: str) -> None:
    check(
        len(value) <= maximum,
        "%s may not be longer than %d, provided: %d",
        name,
        maximum,
        len(value),
    )


def check_same_guild(first: Any, second: Any) -> None:
    """Both arguments must belong to the same guild, either may be the
    guild itself.
    """

    first_guild = getattr(first, "guild", first)
    second_guild = getattr(second, "guild", second)
    if first_guild is not second_guild:
        raise ValidationError(
            f"{type(second).__name__} must be from the same guild as "
            f"{type(first).__name__}"
        )


def has_permission(
    member: Member, *permissions: Permission, channel: Optional[GuildChannel] = None
) -> bool:
    required = Permission(0)
    for permission in permissions:
        required |= permission
    return effective_permissions(member, channel).has(required)


def check_permission(
    member: Member, *permissions: Permission, channel: Optional[GuildChannel] = None
) -> None:
    """Raises `MissingPermission` for the first permission in
    `permissions` that `member` does not have.
    """

    effective = effective_permissions(member, channel)
    for permission in permissions:
        if not effective.has(permission):
            raise MissingPermission(permission)


def _role_outranks(issuer: Role, target: Role) -> bool:
    return target.position < issuer.position


def can_interact(issuer: Union[Member, Role], target: Union[Member, Role]) -> bool:
    """Whether `issuer` is high enough in the role hierarchy to modify
    `target`. Equal positions do not outrank each other.

    A member's position is that of its highest role; the owner outranks
    everyone and nobody outranks the owner.
    """

    check_same_guild(issuer, target)

    if _is_member(issuer):
        if issuer.is_owner:
            return True
        if not issuer.roles:
            return False
        issuer = issuer.roles[0]

    if _is_member(target):
        if target.is_owner:
            return False
        if not target.roles:
            return True
        target = target.roles[0]

    return _role_outranks(issuer, target)


def check_hierarchy(issuer: Union[Member, Role], target: Union[Member, Role]) -> None:
    """Raises `HierarchyError` unless `issuer` outranks `target`"""

    if not can_interact(issuer, target):
        raise HierarchyError(
            f"Can't modify a {type(target).__name__.lower()} with higher or "
            "equal highest role than yourself!"
        )


def _is_member(value: Any) -> bool:
    return hasattr(value, "roles")
