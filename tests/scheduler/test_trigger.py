"""Tests for the build trigger."""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from drone_cron.drone.client import DroneClient
from drone_cron.drone.exceptions import DroneAPIError, DroneConnectionError, DroneNotFoundError
from drone_cron.drone.models import Build
from drone_cron.scheduler.trigger import BuildTrigger, TriggerResult, TriggerState


@pytest.fixture
def client() -> Mock:
    """Create a mock Drone client."""
    client = Mock(spec=DroneClient)
    client.build_last = AsyncMock(return_value=Build(number=42, branch="master"))
    client.build_start = AsyncMock(
        return_value=Build(number=43, branch="master", link="https://drone.example.com/acme/widgets/43")
    )
    return client


class TestBuildTrigger:
    """Tests for BuildTrigger."""

    @pytest.mark.asyncio
    async def test_restarts_last_build(self, client: Mock) -> None:
        """Test that the last build number is restarted exactly once."""
        trigger = BuildTrigger("acme", "widgets", client)

        result = await trigger()

        client.build_last.assert_awaited_once_with("acme", "widgets", "master")
        client.build_start.assert_awaited_once_with("acme", "widgets", 42, None)
        assert result.success
        assert result.state == TriggerState.STARTED
        assert result.last_build.number == 42
        assert result.new_build.number == 43
        assert result.new_build.link == "https://drone.example.com/acme/widgets/43"
        assert result.error is None
        assert result.completed_at is not None

    @pytest.mark.asyncio
    async def test_uses_branch(self, client: Mock) -> None:
        """Test that the configured branch is looked up."""
        trigger = BuildTrigger("acme", "widgets", client, branch="main")

        await trigger()

        client.build_last.assert_awaited_once_with("acme", "widgets", "main")

    @pytest.mark.asyncio
    async def test_build_last_failure(self, client: Mock, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a lookup failure stops the invocation."""
        client.build_last.side_effect = DroneNotFoundError("not found", status_code=404)
        trigger = BuildTrigger("acme", "widgets", client)

        with caplog.at_level(logging.ERROR):
            result = await trigger()

        client.build_start.assert_not_called()
        assert not result.success
        assert result.state == TriggerState.FAILED
        assert "not found" in result.error
        assert "failed to get last build" in caplog.text

    @pytest.mark.asyncio
    async def test_build_start_failure(self, client: Mock, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a start failure is reported and not retried."""
        client.build_start.side_effect = DroneAPIError("boom", status_code=500)
        trigger = BuildTrigger("acme", "widgets", client)

        with caplog.at_level(logging.ERROR):
            result = await trigger()

        client.build_last.assert_awaited_once()
        client.build_start.assert_awaited_once()
        assert result.state == TriggerState.FAILED
        assert result.last_build.number == 42
        assert result.new_build is None
        assert "failed to start new build of acme/widgets#42" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_does_not_propagate(self, client: Mock) -> None:
        """Test that transport failures are contained."""
        client.build_last.side_effect = DroneConnectionError("refused")

        result = await BuildTrigger("acme", "widgets", client)()

        assert result.state == TriggerState.FAILED

    @pytest.mark.asyncio
    async def test_logs_progress(self, client: Mock, caplog: pytest.LogCaptureFixture) -> None:
        """Test the informational log records."""
        with caplog.at_level(logging.INFO):
            await BuildTrigger("acme", "widgets", client)()

        assert "Restarting last build acme/widgets#42" in caplog.text
        assert "Starting build acme/widgets#43" in caplog.text

    @pytest.mark.asyncio
    async def test_repeated_invocations_are_independent(self, client: Mock) -> None:
        """Test that each call resolves the last build again."""
        trigger = BuildTrigger("acme", "widgets", client)

        await trigger()
        client.build_last.return_value = Build(number=43)
        await trigger()

        assert client.build_last.await_count == 2
        assert client.build_start.await_args_list[1].args == ("acme", "widgets", 43, None)

    def test_repository(self, client: Mock) -> None:
        """Test the repository property."""
        assert BuildTrigger("acme", "widgets", client).repository == "acme/widgets"

    def test_value_semantics(self, client: Mock) -> None:
        """Test that triggers compare by repository and branch."""
        other = Mock(spec=DroneClient)

        assert BuildTrigger("acme", "widgets", client) == BuildTrigger("acme", "widgets", other)
        assert BuildTrigger("acme", "widgets", client) != BuildTrigger("acme", "widgets", client, branch="main")


class TestTriggerResult:
    """Tests for TriggerResult."""

    def test_initial_state(self) -> None:
        """Test a fresh result."""
        result = TriggerResult(repository="acme/widgets", branch="master")

        assert result.state == TriggerState.IDLE
        assert not result.success

    def test_fail(self) -> None:
        """Test marking a result failed."""
        result = TriggerResult(repository="acme/widgets", branch="master")

        result.fail(RuntimeError("nope"))

        assert result.state == TriggerState.FAILED
        assert result.error == "nope"
        assert result.completed_at is not None
