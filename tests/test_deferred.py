"""Tests for deferred actions."""

from unittest.mock import MagicMock

import pytest

from conftest import PLAIN_ID, json_response
from lazycord.actions import Action, DeferredAction
from lazycord.rest import NotFound, RequestDescriptor, Route, StalePrecondition


def fetch_action(requester):
    route = Route("GET", "/users/{user_id}", user_id=1)
    return Action(requester, RequestDescriptor(route=route), lambda r: r.json()["id"])


class TestDeferredAction:
    """Tests for probe and fallback."""

    @pytest.mark.asyncio
    async def test_probe_hit_skips_fallback(self, requester, transport):
        """Test a cached value settles without building the fallback."""
        fallback = MagicMock()
        action = DeferredAction(requester, lambda: "cached", fallback)

        assert await action == "cached"
        fallback.assert_not_called()
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_probe_miss_runs_fallback(self, requester, transport):
        """Test None from the probe falls back to the request."""
        transport.responder = lambda request: json_response({"id": "1"})
        action = DeferredAction(requester, lambda: None, lambda: fetch_action(requester))

        assert await action == "1"
        assert transport.calls == 1

    @pytest.mark.asyncio
    async def test_probe_called_once_per_execution(self, requester):
        """Test the probe runs exactly once each time."""
        probe = MagicMock(return_value=1)
        action = DeferredAction(requester, probe, MagicMock())

        await action
        await action

        assert probe.call_count == 2

    @pytest.mark.asyncio
    async def test_probe_error_is_failure(self, requester, transport):
        """Test a raising probe fails instead of falling back."""
        fallback = MagicMock()
        probe = MagicMock(side_effect=RuntimeError("cache broken"))
        action = DeferredAction(requester, probe, fallback)

        with pytest.raises(RuntimeError, match="cache broken"):
            await action

        fallback.assert_not_called()
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self, requester, transport):
        """Test fallback errors reach the caller unchanged."""
        error = NotFound(404, {"message": "Unknown User", "code": 10013})
        transport.responder = lambda request: error
        action = DeferredAction(requester, lambda: None, lambda: fetch_action(requester))

        with pytest.raises(NotFound) as exc_info:
            await action

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_check_runs_before_probe(self, requester):
        """Test a failing check stops the probe from running."""
        probe = MagicMock(return_value=1)
        action = DeferredAction(requester, probe, MagicMock()).set_check(lambda: False)

        with pytest.raises(StalePrecondition):
            await action

        probe.assert_not_called()


class TestRetrieveMember:
    """Tests for the member lookup built on deferred actions."""

    @pytest.mark.asyncio
    async def test_cached_member(self, guild, transport):
        """Test a cached member resolves locally."""
        member = await guild.retrieve_member(PLAIN_ID)

        assert member is guild.members[PLAIN_ID]
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_uncached_member_is_fetched(self, guild, transport):
        """Test an unknown member is fetched and cached."""
        transport.responder = lambda request: json_response(
            {"user": {"id": "77", "username": "newcomer"}, "roles": []}
        )

        member = await guild.retrieve_member("77")

        assert member.user.name == "newcomer"
        assert guild.members[77] is member
        assert transport.last.route.compiled_path == "/guilds/100/members/77"

        # cached now
        await guild.retrieve_member(77)
        assert transport.calls == 1
