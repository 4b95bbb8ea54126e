""" Permission bits and the rules discord uses to combine them, these
only ever read the cached state of a guild.
"""

from __future__ import annotations

import enum
import functools
import operator
from typing import TYPE_CHECKING, Optional

from .rest.errors import ValidationError

if TYPE_CHECKING:
    from .entities.channel import GuildChannel
    from .entities.guild import Member

__all__ = ("Permission", "effective_permissions", "explicit_permissions")


class Permission(enum.IntFlag):
    """A single permission bit, or a combination of them"""

    CREATE_INSTANT_INVITE = 1 << 0
    KICK_MEMBERS = 1 << 1
    BAN_MEMBERS = 1 << 2
    ADMINISTRATOR = 1 << 3
    MANAGE_CHANNEL = 1 << 4
    MANAGE_SERVER = 1 << 5
    MESSAGE_ADD_REACTION = 1 << 6
    VIEW_AUDIT_LOGS = 1 << 7
    PRIORITY_SPEAKER = 1 << 8
    VOICE_STREAM = 1 << 9
    VIEW_CHANNEL = 1 << 10
    MESSAGE_WRITE = 1 << 11
    MESSAGE_TTS = 1 << 12
    MESSAGE_MANAGE = 1 << 13
    MESSAGE_EMBED_LINKS = 1 << 14
    MESSAGE_ATTACH_FILES = 1 << 15
    MESSAGE_HISTORY = 1 << 16
    MESSAGE_MENTION_EVERYONE = 1 << 17
    MESSAGE_EXT_EMOJI = 1 << 18
    VOICE_CONNECT = 1 << 20
    VOICE_SPEAK = 1 << 21
    VOICE_MUTE_OTHERS = 1 << 22
    VOICE_DEAF_OTHERS = 1 << 23
    VOICE_MOVE_OTHERS = 1 << 24
    VOICE_USE_VAD = 1 << 25
    NICKNAME_CHANGE = 1 << 26
    NICKNAME_MANAGE = 1 << 27
    MANAGE_ROLES = 1 << 28
    MANAGE_WEBHOOKS = 1 << 29
    MANAGE_EMOTES = 1 << 30

    # aliases
    MESSAGE_READ = VIEW_CHANNEL
    MANAGE_PERMISSIONS = MANAGE_ROLES

    @classmethod
    def all(cls) -> Permission:
        return functools.reduce(operator.or_, cls.__members__.values(), cls(0))

    @classmethod
    def from_raw(cls, raw: int) -> Permission:
        """Parses the raw integer (or numeric string) discord sends,
        unknown bits are dropped.
        """

        return cls(int(raw) & cls.all())

    def has(self, permissions: Permission) -> bool:
        """Whether every bit of `permissions` is set"""
        return self & permissions == permissions

    def to_json(self) -> str:
        return str(int(self))


def _apply(permissions: Permission, allow: Permission, deny: Permission) -> Permission:
    # allowed bits override the denied ones
    return (permissions & ~deny) | allow


def _guild_permissions(member: Member) -> Permission:
    permissions = member.guild.public_role.permissions
    for role in member.roles:
        permissions |= role.permissions
    return permissions


def _overrides(channel: GuildChannel, member: Member) -> "tuple[Permission, Permission]":
    allow = deny = Permission(0)

    override = channel.overrides.get(member.guild.id)
    if override is not None:
        allow, deny = override.allow, override.deny

    role_allow = role_deny = Permission(0)
    for role in member.roles:
        override = channel.overrides.get(role.id)
        if override is not None:
            role_allow |= override.allow
            role_deny |= override.deny

    allow = (allow & ~role_deny) | role_allow
    deny = (deny & ~role_allow) | role_deny

    override = channel.overrides.get(member.id)
    if override is not None:
        allow = (allow & ~override.deny) | override.allow
        deny = (deny & ~override.allow) | override.deny

    return allow, deny


def _check_guild(first: object, second: object, what: str) -> None:
    if first != second:
        raise ValidationError(f"Specified {what} is not in the same guild!")


def explicit_permissions(member: Member, channel: Optional[GuildChannel] = None) -> Permission:
    """The permissions granted by roles and overrides, without the
    owner and administrator shortcuts.
    """

    permissions = _guild_permissions(member)
    if channel is None:
        return permissions

    _check_guild(channel.guild, member.guild, "member")
    allow, deny = _overrides(channel, member)
    return _apply(permissions, allow, deny)


def effective_permissions(member: Member, channel: Optional[GuildChannel] = None) -> Permission:
    """The permissions `member` actually has in the guild, or in
    `channel` when given.

    The owner and administrators have every permission. In a channel
    the overrides of the public role are applied first, then the
    combined overrides of the member's roles and finally the override of
    the member itself. Without `VIEW_CHANNEL` a member has no
    permissions in the channel at all.
    """

    if member.is_owner:
        return Permission.all()

    permissions = _guild_permissions(member)
    if permissions.has(Permission.ADMINISTRATOR):
        return Permission.all()

    if channel is None:
        return permissions

    _check_guild(channel.guild, member.guild, "member")
    allow, deny = _overrides(channel, member)
    permissions = _apply(permissions, allow, deny)

    if not permissions.has(Permission.VIEW_CHANNEL):
        return Permission(0)
    return permissions
