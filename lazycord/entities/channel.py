from __future__ import annotations

import datetime
import enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence, Tuple

import attr

from .. import checks
from ..actions import Action, AuditableAction, PaginationAction, PaginationOrder
from ..permissions import Permission, effective_permissions
from ..rest import FormBuilder, JSONBuilder, RequestDescriptor, Response, Route
from .base import Identifiable, Mentionable, SnowflakeLike, parse_snowflake, snowflake_time
from .guild import User

if TYPE_CHECKING:
    from .guild import Guild, Member

__all__ = ("OverrideType", "PermissionOverride", "GuildChannel", "TextChannel", "Message")

MAX_MESSAGE_LENGTH = 2000

# discord refuses to bulk delete messages older than two weeks
BULK_DELETE_MAX_AGE = datetime.timedelta(days=14)


class OverrideType(enum.IntEnum):
    ROLE = 0
    MEMBER = 1


@attr.define
class PermissionOverride:
    id: int = attr.field()
    """ ID of the role or member this override applies to """

    type: OverrideType = attr.field()
    allow: Permission = attr.field(default=Permission(0))
    deny: Permission = attr.field(default=Permission(0))

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> PermissionOverride:
        return cls(
            id=int(data["id"]),
            type=OverrideType(int(data["type"])),
            allow=Permission.from_raw(data.get("allow", 0)),
            deny=Permission.from_raw(data.get("deny", 0)),
        )


@attr.define(eq=False)
class GuildChannel(Identifiable, Mentionable):
    guild: Guild = attr.field(repr=False)
    id: int = attr.field()
    name: str = attr.field()
    position: int = attr.field(default=0)
    overrides: Dict[int, PermissionOverride] = attr.field(factory=dict, repr=False)
    """ Permission overrides by role or member ID """

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"

    def permissions_for(self, member: Member) -> Permission:
        return effective_permissions(member, self)

    def _check_permission(self, *permissions: Permission) -> None:
        checks.check_permission(self.guild.self_member, *permissions, channel=self)


@attr.define(eq=False)
class TextChannel(GuildChannel):
    topic: Optional[str] = attr.field(default=None)

    def _message_transform(self, response: Response) -> Message:
        return Message.from_payload(self, response.json())

    def send_message(
        self, content: str, files: Sequence[Tuple[str, bytes]] = ()
    ) -> Action[Message]:
        """Sends a message, optionally with `(filename, data)` attachments.

        Raises
        ------
        lazycord.rest.errors.ValidationError
            The content is empty (without files) or longer than 2000.
        lazycord.rest.errors.MissingPermission
            Without `VIEW_CHANNEL` and `MESSAGE_WRITE`, or
            `MESSAGE_ATTACH_FILES` when sending files.
        """

        checks.check(bool(content) or bool(files), "Cannot send an empty message")
        checks.check_length(content, MAX_MESSAGE_LENGTH, "Message content")
        self._check_permission(Permission.VIEW_CHANNEL, Permission.MESSAGE_WRITE)

        route = Route("POST", "/channels/{channel_id}/messages", channel_id=self.id)
        body = JSONBuilder().add_optional("content", content or None)

        if files:
            self._check_permission(Permission.MESSAGE_ATTACH_FILES)
            form = FormBuilder().add_json(body)
            for index, (filename, data) in enumerate(files):
                form.add_file(index, filename, data)
            request = RequestDescriptor(route=route, form=form)
        else:
            request = RequestDescriptor(route=route, json=body)

        return Action(self.guild.requester, request, self._message_transform)

    def retrieve_message(self, message_id: SnowflakeLike) -> Action[Message]:
        self._check_permission(Permission.VIEW_CHANNEL, Permission.MESSAGE_HISTORY)

        route = Route(
            "GET",
            "/channels/{channel_id}/messages/{message_id}",
            channel_id=self.id,
            message_id=parse_snowflake(message_id, "Message ID"),
        )
        return Action(self.guild.requester, RequestDescriptor(route=route), self._message_transform)

    def delete_message(self, message_id: SnowflakeLike) -> AuditableAction[None]:
        """Deletes a message by ID, deleting messages of other users
        needs `MESSAGE_MANAGE` which discord checks for us since we
        do not know the author.
        """

        self._check_permission(Permission.VIEW_CHANNEL)

        route = Route(
            "DELETE",
            "/channels/{channel_id}/messages/{message_id}",
            channel_id=self.id,
            message_id=parse_snowflake(message_id, "Message ID"),
        )
        return AuditableAction(self.guild.requester, RequestDescriptor(route=route))

    def delete_messages(self, message_ids: Sequence[SnowflakeLike]) -> AuditableAction[None]:
        """Bulk deletes 2 to 100 messages, none of them may be older
        than two weeks.
        """

        checks.check_range(len(message_ids), 2, 100, "Message count")
        self._check_permission(Permission.MESSAGE_MANAGE)

        ids = [parse_snowflake(value, "Message ID") for value in message_ids]
        checks.check(len(set(ids)) == len(ids), "Message IDs must be unique")

        oldest = datetime.datetime.now(datetime.timezone.utc) - BULK_DELETE_MAX_AGE
        for message_id in ids:
            checks.check(
                snowflake_time(message_id) > oldest,
                "Message %d is older than 2 weeks and cannot be bulk deleted",
                message_id,
            )

        route = Route("POST", "/channels/{channel_id}/messages/bulk-delete", channel_id=self.id)
        body = JSONBuilder(messages=[str(message_id) for message_id in ids])
        return AuditableAction(self.guild.requester, RequestDescriptor(route=route, json=body))

    def iter_history(self) -> PaginationAction[Message]:
        """Pages through the messages of the channel, newest first. Use
        `order`/`skip_to`/`around` on the returned action to start
        elsewhere.
        """

        self._check_permission(Permission.VIEW_CHANNEL, Permission.MESSAGE_HISTORY)

        route = Route("GET", "/channels/{channel_id}/messages", channel_id=self.id)
        return PaginationAction(
            requester=self.guild.requester,
            request=RequestDescriptor(route=route),
            transformer=lambda response: [
                Message.from_payload(self, data) for data in response.json()
            ],
            key=lambda message: message.id,
            orders=(PaginationOrder.BACKWARD, PaginationOrder.FORWARD, PaginationOrder.AROUND),
        )

    def retrieve_reaction_users(self, message_id: SnowflakeLike, emoji: str) -> PaginationAction[User]:
        """Pages through the users that reacted with `emoji`, either a
        unicode emoji or `name:id` for custom ones.
        """

        self._check_permission(Permission.VIEW_CHANNEL, Permission.MESSAGE_HISTORY)
        checks.check(bool(emoji), "Emoji may not be empty")

        route = Route(
            "GET",
            "/channels/{channel_id}/messages/{message_id}/reactions/{emoji}",
            channel_id=self.id,
            message_id=parse_snowflake(message_id, "Message ID"),
            emoji=emoji,
        )
        return PaginationAction(
            requester=self.guild.requester,
            request=RequestDescriptor(route=route),
            transformer=lambda response: [User.from_payload(data) for data in response.json()],
            key=lambda user: user.id,
            orders=(PaginationOrder.FORWARD,),
        )

    def add_reaction(self, message_id: SnowflakeLike, emoji: str) -> Action[None]:
        self._check_permission(
            Permission.VIEW_CHANNEL, Permission.MESSAGE_HISTORY, Permission.MESSAGE_ADD_REACTION
        )
        checks.check(bool(emoji), "Emoji may not be empty")

        route = Route(
            "PUT",
            "/channels/{channel_id}/messages/{message_id}/reactions/{emoji}/@me",
            channel_id=self.id,
            message_id=parse_snowflake(message_id, "Message ID"),
            emoji=emoji,
        )
        return Action(self.guild.requester, RequestDescriptor(route=route))

    @classmethod
    def from_payload(cls, guild: Guild, data: Mapping[str, Any]) -> TextChannel:
        overrides = [
            PermissionOverride.from_payload(item)
            for item in data.get("permission_overwrites", [])
        ]
        return cls(
            guild=guild,
            id=int(data["id"]),
            name=data["name"],
            position=data.get("position", 0),
            overrides={override.id: override for override in overrides},
            topic=data.get("topic"),
        )


@attr.define(eq=False)
class Message(Identifiable):
    channel: TextChannel = attr.field(repr=False)
    id: int = attr.field()
    author: User = attr.field()
    content: str = attr.field(default="")

    @property
    def is_own(self) -> bool:
        return self.author.id == self.channel.guild.self_id

    def delete(self) -> AuditableAction[None]:
        if not self.is_own:
            self.channel._check_permission(Permission.MESSAGE_MANAGE)
        return self.channel.delete_message(self.id)

    def edit(self, content: str) -> Action[Message]:
        checks.check(self.is_own, "Attempted to update message that was not sent by this account")
        checks.check(bool(content), "Cannot edit a message to be empty")
        checks.check_length(content, MAX_MESSAGE_LENGTH, "Message content")

        route = Route(
            "PATCH",
            "/channels/{channel_id}/messages/{message_id}",
            channel_id=self.channel.id,
            message_id=self.id,
        )
        return Action(
            self.channel.guild.requester,
            RequestDescriptor(route=route, json=JSONBuilder(content=content)),
            self.channel._message_transform,
        )

    def add_reaction(self, emoji: str) -> Action[None]:
        return self.channel.add_reaction(self.id, emoji)

    def retrieve_reaction_users(self, emoji: str) -> PaginationAction[User]:
        return self.channel.retrieve_reaction_users(self.id, emoji)

    @classmethod
    def from_payload(cls, channel: TextChannel, data: Mapping[str, Any]) -> Message:
        return cls(
            channel=channel,
            id=int(data["id"]),
            author=User.from_payload(data["author"]),
            content=data.get("content", ""),
        )
