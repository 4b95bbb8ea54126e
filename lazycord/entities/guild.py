from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

import attr

from .. import checks
from ..actions import (
    Action,
    AuditableAction,
    BaseAction,
    CompletedAction,
    DeferredAction,
    PaginationAction,
    PaginationOrder,
)
from ..permissions import Permission, effective_permissions
from ..rest import JSONBuilder, MissingPermission, RequestDescriptor, Requester, Response, Route
from .base import Identifiable, Mentionable, SnowflakeLike, parse_snowflake

if TYPE_CHECKING:
    from .channel import GuildChannel, TextChannel

__all__ = ("User", "Role", "Member", "Ban", "AuditLogEntry", "Guild")

_log = logging.getLogger(__name__)


@attr.define(eq=False)
class User(Identifiable, Mentionable):
    id: int = attr.field()
    name: str = attr.field()
    discriminator: str = attr.field(default="0")
    bot: bool = attr.field(default=False)

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> User:
        return cls(
            id=int(data["id"]),
            name=data["username"],
            discriminator=data.get("discriminator", "0"),
            bot=data.get("bot", False),
        )


@attr.define(eq=False)
class Role(Identifiable, Mentionable):
    guild: Guild = attr.field(repr=False)
    id: int = attr.field()
    name: str = attr.field()
    position: int = attr.field()
    permissions: Permission = attr.field(default=Permission(0))
    managed: bool = attr.field(default=False)

    @property
    def mention(self) -> str:
        return f"<@&{self.id}>"

    @property
    def is_public_role(self) -> bool:
        """Whether this is the `@everyone` role, which shares the guild's ID"""
        return self.id == self.guild.id

    def _check_can_modify(self) -> None:
        member = self.guild.self_member
        checks.check_permission(member, Permission.MANAGE_ROLES)
        checks.check_hierarchy(member, self)

    def delete(self) -> AuditableAction[None]:
        """Deletes the role.

        Raises
        ------
        lazycord.rest.errors.MissingPermission
            Without `MANAGE_ROLES`.
        lazycord.rest.errors.HierarchyError
            The role is not below our highest role.
        lazycord.rest.errors.ValidationError
            The role is managed by an integration or is the public role.
        """

        checks.check(not self.managed, "Cannot delete a Role that is managed")
        checks.check(not self.is_public_role, "Cannot delete the public role")
        self._check_can_modify()

        route = Route("DELETE", "/guilds/{guild_id}/roles/{role_id}", guild_id=self.guild.id, role_id=self.id)
        return AuditableAction(self.guild.requester, RequestDescriptor(route=route))

    def modify_permissions(self, permissions: Permission) -> AuditableAction[Role]:
        """Replaces the permissions of the role, we can only hand out
        permissions that we have ourselves.
        """

        self._check_can_modify()
        ours = self.guild.self_member.permissions
        for permission in Permission:
            if permissions.has(permission) and not ours.has(permission):
                raise MissingPermission(permission)

        route = Route("PATCH", "/guilds/{guild_id}/roles/{role_id}", guild_id=self.guild.id, role_id=self.id)
        body = JSONBuilder(permissions=permissions)

        def transform(response: Response) -> Role:
            role = Role.from_payload(self.guild, response.json())
            self.guild.roles[role.id] = role
            return role

        return AuditableAction(
            self.guild.requester, RequestDescriptor(route=route, json=body), transform
        )

    @classmethod
    def from_payload(cls, guild: Guild, data: Mapping[str, Any]) -> Role:
        return cls(
            guild=guild,
            id=int(data["id"]),
            name=data["name"],
            position=data["position"],
            permissions=Permission.from_raw(data.get("permissions", 0)),
            managed=data.get("managed", False),
        )


@attr.define(eq=False)
class Member(Identifiable, Mentionable):
    guild: Guild = attr.field(repr=False)
    user: User = attr.field()
    role_ids: List[int] = attr.field(factory=list)
    nickname: Optional[str] = attr.field(default=None)

    @property
    def id(self) -> int:  # type: ignore[override]
        return self.user.id

    @property
    def mention(self) -> str:
        return f"<@!{self.id}>" if self.nickname else self.user.mention

    @property
    def effective_name(self) -> str:
        return self.nickname or self.user.name

    @property
    def roles(self) -> List[Role]:
        """Cached roles of the member, highest first. The public role is
        not included.
        """

        roles = [
            self.guild.roles[role_id]
            for role_id in self.role_ids
            if role_id in self.guild.roles
        ]
        return sorted(roles, key=lambda role: role.position, reverse=True)

    @property
    def is_owner(self) -> bool:
        return self.guild.owner_id == self.id

    @property
    def is_self(self) -> bool:
        return self.guild.self_id == self.id

    @property
    def permissions(self) -> Permission:
        return effective_permissions(self)

    def permissions_in(self, channel: GuildChannel) -> Permission:
        return effective_permissions(self, channel)

    def has_permission(self, *permissions: Permission, channel: Optional[GuildChannel] = None) -> bool:
        return checks.has_permission(self, *permissions, channel=channel)

    def modify_nickname(self, nickname: Optional[str]) -> BaseAction[None]:
        """Changes (or with `None` resets) the nickname of the member"""

        if nickname is not None:
            checks.check_range(len(nickname), 1, 32, "Nickname length")

        guild = self.guild
        if self.is_self:
            checks.check_permission(self, Permission.NICKNAME_CHANGE)
            route = Route("PATCH", "/guilds/{guild_id}/members/@me", guild_id=guild.id)
        else:
            checks.check_permission(guild.self_member, Permission.NICKNAME_MANAGE)
            checks.check_hierarchy(guild.self_member, self)
            route = Route("PATCH", "/guilds/{guild_id}/members/{user_id}", guild_id=guild.id, user_id=self.id)

        if nickname == self.nickname:
            return CompletedAction(guild.requester)

        body = JSONBuilder(nick=nickname or "")
        return AuditableAction(guild.requester, RequestDescriptor(route=route, json=body))

    def kick(self) -> AuditableAction[None]:
        return self.guild.kick(self)

    def ban(self, delete_days: int = 0) -> AuditableAction[None]:
        return self.guild.ban(self, delete_days)

    @classmethod
    def from_payload(cls, guild: Guild, data: Mapping[str, Any]) -> Member:
        return cls(
            guild=guild,
            user=User.from_payload(data["user"]),
            role_ids=[int(id) for id in data.get("roles", [])],
            nickname=data.get("nick"),
        )


@attr.define
class Ban:
    user: User = attr.field()
    reason: Optional[str] = attr.field(default=None)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> Ban:
        return cls(user=User.from_payload(data["user"]), reason=data.get("reason"))


@attr.define
class AuditLogEntry(Identifiable):
    id: int = attr.field()
    action_type: int = attr.field()
    user_id: Optional[int] = attr.field(default=None)
    target_id: Optional[int] = attr.field(default=None)
    reason: Optional[str] = attr.field(default=None)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> AuditLogEntry:
        def optional_id(key: str) -> Optional[int]:
            value = data.get(key)
            return int(value) if value is not None else None

        return cls(
            id=int(data["id"]),
            action_type=data["action_type"],
            user_id=optional_id("user_id"),
            target_id=optional_id("target_id"),
            reason=data.get("reason"),
        )


UserLike = Union[Member, User, SnowflakeLike]


def _user_id(user: UserLike) -> int:
    if isinstance(user, (Member, User)):
        return user.id
    return parse_snowflake(user, "User ID")


@attr.define(eq=False)
class Guild(Identifiable):
    """A guild along with the parts of it we keep cached, every method
    validates against that cache before building its action.
    """

    requester: Requester = attr.field(repr=False)
    """ The runtime every action of this guild is executed on """

    id: int = attr.field()
    name: str = attr.field()
    owner_id: int = attr.field()
    self_id: int = attr.field()
    """ The user ID of the account we are logged in as """

    roles: Dict[int, Role] = attr.field(factory=dict, repr=False)
    members: Dict[int, Member] = attr.field(factory=dict, repr=False)
    channels: Dict[int, TextChannel] = attr.field(factory=dict, repr=False)

    @property
    def public_role(self) -> Role:
        """The `@everyone` role, which shares the guild's ID"""
        role = self.roles.get(self.id)
        checks.check(role is not None, "The public role of the guild is not cached")
        return role  # type: ignore[return-value]

    @property
    def self_member(self) -> Member:
        member = self.members.get(self.self_id)
        checks.check(member is not None, "The member of the current account is not cached")
        return member  # type: ignore[return-value]

    def get_member(self, user_id: SnowflakeLike) -> Optional[Member]:
        return self.members.get(parse_snowflake(user_id, "User ID"))

    def get_role(self, role_id: SnowflakeLike) -> Optional[Role]:
        return self.roles.get(parse_snowflake(role_id, "Role ID"))

    def get_channel(self, channel_id: SnowflakeLike) -> Optional[TextChannel]:
        return self.channels.get(parse_snowflake(channel_id, "Channel ID"))

    def _member_route(self, method: str, user_id: int, path: str = "") -> Route:
        return Route(method, "/guilds/{guild_id}/members/{user_id}" + path, guild_id=self.id, user_id=user_id)

    def kick(self, member: Member) -> AuditableAction[None]:
        """Kicks `member` from the guild.

        Raises
        ------
        lazycord.rest.errors.ValidationError
            The member is from a different guild.
        lazycord.rest.errors.MissingPermission
            Without `KICK_MEMBERS`.
        lazycord.rest.errors.HierarchyError
            The member's highest role is not below ours.
        """

        checks.check_same_guild(self, member)
        checks.check_permission(self.self_member, Permission.KICK_MEMBERS)
        checks.check_hierarchy(self.self_member, member)

        route = self._member_route("DELETE", member.id)
        return AuditableAction(self.requester, RequestDescriptor(route=route))

    def ban(self, user: UserLike, delete_days: int = 0) -> AuditableAction[None]:
        """Bans a user, who does not have to be a member. Messages of
        the last `delete_days` days (0-7) are deleted along with it.
        """

        checks.check_permission(self.self_member, Permission.BAN_MEMBERS)
        checks.check_range(delete_days, 0, 7, "Deletion days")

        user_id = _user_id(user)
        member = user if isinstance(user, Member) else self.members.get(user_id)
        if member is not None:
            checks.check_same_guild(self, member)
            checks.check_hierarchy(self.self_member, member)

        route = Route("PUT", "/guilds/{guild_id}/bans/{user_id}", guild_id=self.id, user_id=user_id)
        body = JSONBuilder().add_optional("delete_message_days", delete_days or None)
        return AuditableAction(self.requester, RequestDescriptor(route=route, json=body))

    def unban(self, user: UserLike) -> AuditableAction[None]:
        checks.check_permission(self.self_member, Permission.BAN_MEMBERS)

        route = Route("DELETE", "/guilds/{guild_id}/bans/{user_id}", guild_id=self.id, user_id=_user_id(user))
        return AuditableAction(self.requester, RequestDescriptor(route=route))

    def retrieve_ban_list(self) -> Action[List[Ban]]:
        checks.check_permission(self.self_member, Permission.BAN_MEMBERS)

        route = Route("GET", "/guilds/{guild_id}/bans", guild_id=self.id)
        return Action(
            self.requester,
            RequestDescriptor(route=route),
            lambda response: [Ban.from_payload(data) for data in response.json()],
        )

    def retrieve_member(self, user: UserLike) -> DeferredAction[Member]:
        """The member from the cache, or fetched (and cached) when we do
        not have it yet.
        """

        user_id = _user_id(user)

        def transform(response: Response) -> Member:
            member = Member.from_payload(self, response.json())
            self.members[member.id] = member
            return member

        def fallback() -> Action[Member]:
            route = self._member_route("GET", user_id)
            return Action(self.requester, RequestDescriptor(route=route), transform)

        return DeferredAction(self.requester, lambda: self.members.get(user_id), fallback)

    def _check_role_assignment(self, member: Member, role: Role) -> None:
        checks.check_same_guild(self, member)
        checks.check_same_guild(self, role)
        checks.check(not role.managed, "Cannot add or remove a managed role")
        checks.check(not role.is_public_role, "Cannot add or remove the public role")
        checks.check_permission(self.self_member, Permission.MANAGE_ROLES)
        checks.check_hierarchy(self.self_member, role)

    def add_role_to_member(self, member: Member, role: Role) -> AuditableAction[None]:
        self._check_role_assignment(member, role)

        route = Route(
            "PUT",
            "/guilds/{guild_id}/members/{user_id}/roles/{role_id}",
            guild_id=self.id,
            user_id=member.id,
            role_id=role.id,
        )
        return AuditableAction(self.requester, RequestDescriptor(route=route))

    def remove_role_from_member(self, member: Member, role: Role) -> AuditableAction[None]:
        self._check_role_assignment(member, role)

        route = Route(
            "DELETE",
            "/guilds/{guild_id}/members/{user_id}/roles/{role_id}",
            guild_id=self.id,
            user_id=member.id,
            role_id=role.id,
        )
        return AuditableAction(self.requester, RequestDescriptor(route=route))

    def retrieve_audit_logs(self) -> PaginationAction[AuditLogEntry]:
        """Pages through the audit log, newest entries first"""

        checks.check_permission(self.self_member, Permission.VIEW_AUDIT_LOGS)

        route = Route("GET", "/guilds/{guild_id}/audit-logs", guild_id=self.id)
        return PaginationAction(
            requester=self.requester,
            request=RequestDescriptor(route=route),
            transformer=lambda response: [
                AuditLogEntry.from_payload(data)
                for data in response.json()["audit_log_entries"]
            ],
            key=lambda entry: entry.id,
            orders=(PaginationOrder.BACKWARD,),
        )

    @classmethod
    def from_payload(cls, requester: Requester, data: Mapping[str, Any], self_id: int) -> Guild:
        """Builds the guild and its cache from a `GUILD_CREATE` like payload"""

        from .channel import TextChannel

        guild = cls(
            requester=requester,
            id=int(data["id"]),
            name=data["name"],
            owner_id=int(data["owner_id"]),
            self_id=self_id,
        )

        for role_data in data.get("roles", []):
            role = Role.from_payload(guild, role_data)
            guild.roles[role.id] = role

        for member_data in data.get("members", []):
            member = Member.from_payload(guild, member_data)
            guild.members[member.id] = member

        for channel_data in data.get("channels", []):
            if channel_data.get("type", 0) != 0:
                _log.debug("Skipping channel %s of type %s", channel_data["id"], channel_data.get("type"))
                continue
            channel = TextChannel.from_payload(guild, channel_data)
            guild.channels[channel.id] = channel

        return guild
