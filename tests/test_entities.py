"""Tests for entity methods and the actions they build."""

import datetime
import json

import pytest

from conftest import (
    GENERAL_ID,
    GUILD_ID,
    LOCKED_ID,
    LOW_ID,
    LOW_ROLE_ID,
    OWNER_ID,
    PEER_ID,
    PEER_ROLE_ID,
    PLAIN_ID,
    SELF_ID,
    VOICE_ID,
    json_response,
    make_guild,
)
from lazycord.actions import AuditableAction, CompletedAction, PaginationAction, PaginationOrder
from lazycord.entities import Message, User, parse_snowflake, snowflake_time, time_snowflake
from lazycord.permissions import Permission
from lazycord.rest import HierarchyError, MissingPermission, ValidationError


def message_payload(id, author_id=SELF_ID, content="hello"):
    return {"id": str(id), "content": content, "author": {"id": str(author_id), "username": "someone"}}


def recent_snowflake(**delta):
    return time_snowflake(datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(**delta))


class TestSnowflakes:
    """Tests for ID parsing and timestamps."""

    def test_parse_int_and_str(self):
        """Test both accepted forms give the same ID."""
        assert parse_snowflake(123) == parse_snowflake("123") == 123

    @pytest.mark.parametrize("value", ["abc", "", "-5", "\u00b2", "\uff11\uff12", True, -1, 1 << 64])
    def test_parse_invalid(self, value):
        """Test malformed IDs are validation errors."""
        with pytest.raises(ValidationError):
            parse_snowflake(value)

    def test_time_round_trip(self):
        """Test the timestamp survives conversion to a snowflake."""
        when = datetime.datetime(2020, 5, 17, 12, 30, tzinfo=datetime.timezone.utc)
        assert snowflake_time(time_snowflake(when)) == when

    def test_created_at(self, guild):
        """Test entities expose their creation time."""
        assert guild.created_at == snowflake_time(GUILD_ID)


class TestGuildFromPayload:
    """Tests for building the cache."""

    def test_cache_is_populated(self, guild):
        """Test roles, members and text channels are cached."""
        assert guild.owner_id == OWNER_ID
        assert len(guild.roles) == 5
        assert len(guild.members) == 5
        assert set(guild.channels) == {GENERAL_ID, LOCKED_ID}
        assert guild.get_channel(str(VOICE_ID)) is None

    def test_member_roles_sorted(self, guild):
        """Test member roles come highest first."""
        member = guild.members[SELF_ID]
        member.role_ids.append(LOW_ROLE_ID)

        assert [role.position for role in member.roles] == [5, 2]

    def test_mentions(self, guild):
        """Test mention formats of the entities."""
        assert guild.members[SELF_ID].mention == f"<@!{SELF_ID}>"
        assert guild.members[PLAIN_ID].mention == f"<@{PLAIN_ID}>"
        assert guild.roles[LOW_ROLE_ID].mention == f"<@&{LOW_ROLE_ID}>"
        assert guild.channels[GENERAL_ID].mention == f"<#{GENERAL_ID}>"

    def test_lookup_by_string(self, guild):
        """Test lookups accept string IDs."""
        assert guild.get_member(str(LOW_ID)) is guild.members[LOW_ID]
        assert guild.get_role(str(LOW_ROLE_ID)) is guild.roles[LOW_ROLE_ID]


class TestModeration:
    """Tests for kicking and banning."""

    @pytest.mark.asyncio
    async def test_kick(self, guild, transport):
        """Test kick builds a DELETE that is only sent when awaited."""
        action = guild.kick(guild.members[LOW_ID])

        assert isinstance(action, AuditableAction)
        assert transport.calls == 0

        await action.reason("rule 3")

        assert transport.last.route.method == "DELETE"
        assert transport.last.route.compiled_path == f"/guilds/{GUILD_ID}/members/{LOW_ID}"
        assert transport.last.reason == "rule 3"

    def test_kick_equal_position(self, guild, transport):
        """Test kicking a member with an equally high role fails locally."""
        with pytest.raises(HierarchyError):
            guild.kick(guild.members[PEER_ID])
        assert transport.calls == 0

    def test_kick_owner(self, guild):
        """Test the owner can never be kicked."""
        with pytest.raises(HierarchyError):
            guild.members[OWNER_ID].kick()

    def test_kick_without_permission(self, requester):
        """Test kicking needs KICK_MEMBERS."""
        guild = make_guild(requester, self_id=PLAIN_ID)

        with pytest.raises(MissingPermission) as exc_info:
            guild.kick(guild.members[LOW_ID])

        assert exc_info.value.permission is Permission.KICK_MEMBERS

    def test_kick_other_guild(self, guild, requester):
        """Test members of other guilds are rejected."""
        other = make_guild(requester)
        with pytest.raises(ValidationError):
            guild.kick(other.members[LOW_ID])

    @pytest.mark.asyncio
    async def test_ban_uncached_user(self, guild, transport):
        """Test users that are not members can be banned by ID."""
        await guild.ban("999", delete_days=3)

        request = transport.last
        assert request.route.method == "PUT"
        assert request.route.compiled_path == f"/guilds/{GUILD_ID}/bans/999"
        assert request.json.build() == {"delete_message_days": 3}

    @pytest.mark.parametrize("days", [-1, 8])
    def test_ban_delete_days_range(self, guild, days):
        """Test deletion days must be between 0 and 7."""
        with pytest.raises(ValidationError):
            guild.ban(guild.members[LOW_ID], delete_days=days)

    def test_ban_checks_hierarchy_of_cached_member(self, guild):
        """Test banning by ID still checks the cached member's roles."""
        with pytest.raises(HierarchyError):
            guild.ban(PEER_ID)

    @pytest.mark.asyncio
    async def test_unban_and_ban_list(self, guild, transport):
        """Test unbanning and listing bans."""
        await guild.unban(User(5, "plain"))
        assert transport.last.route.compiled_path == f"/guilds/{GUILD_ID}/bans/5"

        transport.responder = lambda request: json_response(
            [{"user": {"id": "9", "username": "spammer"}, "reason": "spam"}]
        )
        bans = await guild.retrieve_ban_list()

        assert bans[0].user.id == 9
        assert bans[0].reason == "spam"


class TestRoles:
    """Tests for role management."""

    @pytest.mark.asyncio
    async def test_add_role(self, guild, transport):
        """Test roles below ours can be handed out."""
        await guild.add_role_to_member(guild.members[PLAIN_ID], guild.roles[LOW_ROLE_ID])

        assert transport.last.route.method == "PUT"
        assert transport.last.route.compiled_path == (
            f"/guilds/{GUILD_ID}/members/{PLAIN_ID}/roles/{LOW_ROLE_ID}"
        )

    def test_add_equal_role(self, guild):
        """Test roles at our own position cannot be handed out."""
        with pytest.raises(HierarchyError):
            guild.add_role_to_member(guild.members[PLAIN_ID], guild.roles[PEER_ROLE_ID])

    def test_managed_and_public_roles(self, guild):
        """Test managed and public roles cannot be assigned or deleted."""
        with pytest.raises(ValidationError):
            guild.remove_role_from_member(guild.members[LOW_ID], guild.roles[13])
        with pytest.raises(ValidationError):
            guild.public_role.delete()

    @pytest.mark.asyncio
    async def test_modify_permissions(self, guild, transport):
        """Test permissions we have ourselves can be granted."""
        role = guild.roles[LOW_ROLE_ID]
        transport.responder = lambda request: json_response(
            {"id": str(LOW_ROLE_ID), "name": "low", "position": 2, "permissions": "2"}
        )

        updated = await role.modify_permissions(Permission.KICK_MEMBERS)

        assert transport.last.json.build() == {"permissions": "2"}
        assert updated.permissions == Permission.KICK_MEMBERS
        assert guild.roles[LOW_ROLE_ID] is updated

    def test_modify_permissions_we_lack(self, guild):
        """Test permissions we do not have cannot be granted."""
        with pytest.raises(MissingPermission) as exc_info:
            guild.roles[LOW_ROLE_ID].modify_permissions(Permission.MANAGE_SERVER)

        assert exc_info.value.permission is Permission.MANAGE_SERVER


class TestNicknames:
    """Tests for nickname changes."""

    @pytest.mark.asyncio
    async def test_own_nickname(self, guild, transport):
        """Test changing our own nickname uses the @me route."""
        await guild.members[SELF_ID].modify_nickname("new name")

        assert transport.last.route.compiled_path == f"/guilds/{GUILD_ID}/members/@me"
        assert transport.last.json.build() == {"nick": "new name"}

    @pytest.mark.asyncio
    async def test_unchanged_nickname(self, guild, transport):
        """Test setting the current nickname sends nothing."""
        action = guild.members[SELF_ID].modify_nickname("botty")

        assert isinstance(action, CompletedAction)
        await action
        assert transport.calls == 0

    def test_nickname_of_higher_member(self, guild):
        """Test other members' nicknames respect the hierarchy."""
        with pytest.raises(HierarchyError):
            guild.members[PEER_ID].modify_nickname("peer")

    def test_nickname_length(self, guild):
        """Test nicknames are limited to 32 characters."""
        with pytest.raises(ValidationError):
            guild.members[LOW_ID].modify_nickname("x" * 33)


class TestChannels:
    """Tests for text channel actions."""

    @pytest.mark.asyncio
    async def test_send_message(self, guild, transport):
        """Test sending a message decodes the created message."""
        channel = guild.channels[GENERAL_ID]
        transport.responder = lambda request: json_response(message_payload(1234, content="hi"))

        message = await channel.send_message("hi")

        assert isinstance(message, Message)
        assert message.content == "hi"
        assert message.channel is channel
        assert transport.last.route.compiled_path == f"/channels/{GENERAL_ID}/messages"
        assert transport.last.json.build() == {"content": "hi"}

    def test_send_message_with_files(self, guild):
        """Test attachments switch the body to a multipart form."""
        action = guild.channels[GENERAL_ID].send_message("look", files=[("a.txt", b"data")])

        form = action.request.form
        assert action.request.json is None
        assert [field.name for field in form.fields] == ["payload_json", "files[0]"]
        assert json.loads(form.fields[0].value) == {"content": "look"}

    def test_send_message_validation(self, guild):
        """Test empty and too long messages fail locally."""
        channel = guild.channels[GENERAL_ID]
        with pytest.raises(ValidationError):
            channel.send_message("")
        with pytest.raises(ValidationError):
            channel.send_message("x" * 2001)

    def test_send_message_locked_channel(self, requester):
        """Test channels we cannot see reject sending."""
        guild = make_guild(requester, self_id=PLAIN_ID)
        with pytest.raises(MissingPermission) as exc_info:
            guild.channels[LOCKED_ID].send_message("hi")

        assert exc_info.value.permission is Permission.VIEW_CHANNEL

    def test_send_files_without_permission(self, requester):
        """Test attachments need MESSAGE_ATTACH_FILES."""
        guild = make_guild(requester, self_id=PLAIN_ID)
        with pytest.raises(MissingPermission):
            guild.channels[GENERAL_ID].send_message("hi", files=[("a.txt", b"")])

    @pytest.mark.asyncio
    async def test_bulk_delete(self, guild, transport):
        """Test bulk deletion of recent messages."""
        ids = [recent_snowflake(days=1), recent_snowflake(hours=1)]

        await guild.channels[GENERAL_ID].delete_messages(ids).reason("cleanup")

        assert transport.last.route.compiled_path == f"/channels/{GENERAL_ID}/messages/bulk-delete"
        assert transport.last.json.build() == {"messages": [str(id) for id in ids]}
        assert transport.last.reason == "cleanup"

    def test_bulk_delete_limits(self, guild):
        """Test bulk deletion needs 2-100 unique, young messages."""
        channel = guild.channels[GENERAL_ID]
        recent = recent_snowflake(hours=1)

        with pytest.raises(ValidationError):
            channel.delete_messages([recent])
        with pytest.raises(ValidationError):
            channel.delete_messages([recent, recent])
        with pytest.raises(ValidationError):
            channel.delete_messages([recent, recent_snowflake(days=15)])
        with pytest.raises(ValidationError):
            channel.delete_messages([recent_snowflake(minutes=i) for i in range(101)])

    def test_history_orders(self, guild):
        """Test message history supports every direction."""
        action = guild.channels[GENERAL_ID].iter_history()

        assert isinstance(action, PaginationAction)
        assert action.cursor.order is PaginationOrder.BACKWARD
        action.skip_to(5).order(PaginationOrder.FORWARD)

    @pytest.mark.asyncio
    async def test_history_pages(self, guild, transport):
        """Test history pages decode into messages."""
        transport.responder = lambda request: json_response(
            [message_payload(i, author_id=LOW_ID) for i in (30, 20, 10)]
        )

        messages = [message async for message in guild.channels[GENERAL_ID].iter_history().limit(50)]

        assert [message.id for message in messages] == [30, 20, 10]
        assert transport.calls == 1
        assert transport.last.route.get_query("limit") == "50"

    @pytest.mark.asyncio
    async def test_reaction_users(self, guild, transport):
        """Test reaction users page forward with the emoji in the path."""
        transport.responder = lambda request: json_response([{"id": "7", "username": "fan"}])
        action = guild.channels[GENERAL_ID].retrieve_reaction_users(55, "👍")

        users = await action.fetch_next()

        assert users[0].name == "fan"
        assert transport.last.route.compiled_path.startswith(f"/channels/{GENERAL_ID}/messages/55/reactions/%F0")
        assert transport.last.route.get_query("after") is None
        with pytest.raises(ValidationError):
            action.fresh().order(PaginationOrder.BACKWARD)

    @pytest.mark.asyncio
    async def test_audit_logs(self, guild, transport):
        """Test audit log entries are read from the wrapper object."""
        transport.responder = lambda request: json_response(
            {"audit_log_entries": [{"id": "5", "action_type": 20, "user_id": "2", "target_id": "4"}]}
        )

        entries = await guild.retrieve_audit_logs().fetch_next()

        assert entries[0].target_id == LOW_ID
        assert transport.last.route.compiled_path == f"/guilds/{GUILD_ID}/audit-logs"


class TestMessages:
    """Tests for message actions."""

    def test_edit_foreign_message(self, guild):
        """Test messages of others cannot be edited."""
        message = Message.from_payload(guild.channels[GENERAL_ID], message_payload(1, author_id=LOW_ID))
        with pytest.raises(ValidationError):
            message.edit("changed")

    @pytest.mark.asyncio
    async def test_edit_own_message(self, guild, transport):
        """Test our own messages are edited with PATCH."""
        channel = guild.channels[GENERAL_ID]
        message = Message.from_payload(channel, message_payload(1))
        transport.responder = lambda request: json_response(message_payload(1, content="changed"))

        edited = await message.edit("changed")

        assert edited.content == "changed"
        assert transport.last.route.method == "PATCH"

    @pytest.mark.asyncio
    async def test_delete_and_react(self, guild, transport):
        """Test deleting and reacting to a message."""
        message = Message.from_payload(guild.channels[GENERAL_ID], message_payload(1, author_id=LOW_ID))

        await message.delete()
        assert transport.last.route.method == "DELETE"

        await message.add_reaction("👍")
        assert transport.last.route.compiled_path.endswith("/@me")

    def test_delete_foreign_without_permission(self, requester):
        """Test deleting others' messages needs MESSAGE_MANAGE."""
        guild = make_guild(requester, self_id=PLAIN_ID)
        message = Message.from_payload(guild.channels[GENERAL_ID], message_payload(1, author_id=LOW_ID))

        with pytest.raises(MissingPermission):
            message.delete()
