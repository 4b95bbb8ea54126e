"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any, Callable, List, Optional

import pytest

from lazycord.entities import Guild
from lazycord.permissions import Permission
from lazycord.rest import RequestDescriptor, Requester, Response

GUILD_ID = 100
OWNER_ID = 1
SELF_ID = 2
PEER_ID = 3
LOW_ID = 4
PLAIN_ID = 5

MOD_ROLE_ID = 10
PEER_ROLE_ID = 11
LOW_ROLE_ID = 12

GENERAL_ID = 200
LOCKED_ID = 201
VOICE_ID = 202


def json_response(data: Any, code: int = 200) -> Response:
    """Build a successful JSON response like the client would."""
    return Response(code, json.dumps(data), content_type="application/json; charset=utf-8")


def empty_response() -> Response:
    return Response(204, "", content_type=None)


class FakeTransport:
    """Transport used in tests to record what actions dispatch."""

    def __init__(self, responder: Optional[Callable[[RequestDescriptor], Any]] = None):
        self.requests: List[RequestDescriptor] = []
        self.responder = responder or (lambda request: empty_response())

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last(self) -> RequestDescriptor:
        return self.requests[-1]

    async def execute(self, request: RequestDescriptor) -> Response:
        self.requests.append(request)
        # give other tasks a chance to interleave like a real request would
        await asyncio.sleep(0)
        result = self.responder(request)
        if isinstance(result, BaseException):
            raise result
        return result


def _role(id: int, name: str, position: int, permissions: Permission, **extra: Any) -> dict:
    return {"id": str(id), "name": name, "position": position, "permissions": str(int(permissions)), **extra}


def _member(id: int, name: str, roles: List[int], nick: Optional[str] = None) -> dict:
    return {
        "user": {"id": str(id), "username": name, "discriminator": "0001"},
        "roles": [str(role) for role in roles],
        "nick": nick,
    }


def guild_payload() -> dict:
    """A guild with an owner, the bot (highest role at position 5), a
    peer whose role is also at 5, a member below and one without roles.
    """

    public = (
        Permission.VIEW_CHANNEL
        | Permission.MESSAGE_WRITE
        | Permission.MESSAGE_HISTORY
        | Permission.NICKNAME_CHANGE
    )
    moderator = (
        Permission.KICK_MEMBERS
        | Permission.BAN_MEMBERS
        | Permission.MANAGE_ROLES
        | Permission.MESSAGE_MANAGE
        | Permission.VIEW_AUDIT_LOGS
        | Permission.NICKNAME_MANAGE
        | Permission.MESSAGE_ADD_REACTION
        | Permission.MESSAGE_ATTACH_FILES
    )

    return {
        "id": str(GUILD_ID),
        "name": "test guild",
        "owner_id": str(OWNER_ID),
        "roles": [
            _role(GUILD_ID, "@everyone", 0, public),
            _role(MOD_ROLE_ID, "moderator", 5, moderator),
            _role(PEER_ROLE_ID, "peer", 5, Permission(0)),
            _role(LOW_ROLE_ID, "low", 2, Permission(0)),
            _role(13, "integration", 1, Permission(0), managed=True),
        ],
        "members": [
            _member(OWNER_ID, "owner", []),
            _member(SELF_ID, "bot", [MOD_ROLE_ID], nick="botty"),
            _member(PEER_ID, "peer", [PEER_ROLE_ID]),
            _member(LOW_ID, "low", [LOW_ROLE_ID]),
            _member(PLAIN_ID, "plain", []),
        ],
        "channels": [
            {"id": str(GENERAL_ID), "type": 0, "name": "general", "position": 0},
            {
                "id": str(LOCKED_ID),
                "type": 0,
                "name": "staff",
                "position": 1,
                "permission_overwrites": [
                    {"id": str(GUILD_ID), "type": 0, "allow": "0", "deny": str(int(Permission.VIEW_CHANNEL))},
                    {"id": str(MOD_ROLE_ID), "type": 0, "allow": str(int(Permission.VIEW_CHANNEL)), "deny": "0"},
                ],
            },
            {"id": str(VOICE_ID), "type": 2, "name": "voice", "position": 2},
        ],
    }


def make_guild(requester: Requester, self_id: int = SELF_ID) -> Guild:
    return Guild.from_payload(requester, guild_payload(), self_id)


@pytest.fixture
def transport():
    """Create a recording transport answering every request with 204."""
    return FakeTransport()


@pytest.fixture
def requester(transport):
    """Create a requester bound to whichever loop is running."""
    return Requester(transport)


@pytest.fixture
def loop_thread():
    """Run an event loop in a background thread for the blocking APIs."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()

    yield loop

    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5)
    loop.close()


@pytest.fixture
def threaded_requester(transport, loop_thread):
    """Create a requester bound to the background loop."""
    return Requester(transport, loop=loop_thread)


@pytest.fixture
def guild(requester):
    """Create a cached guild where the current account is a moderator."""
    return make_guild(requester)
