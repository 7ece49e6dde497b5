"""Unit tests for GetGenerationStatus"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from image_studio.app.errors import ErrorCode
from image_studio.app.services.status_tracker import StatusTracker
from image_studio.app.use_cases.generation.get_generation import GetGeneration
from image_studio.app.use_cases.generation.get_generation_status import GetGenerationStatus
from image_studio.domain.generation import Generation, GenerationStatus


@pytest.fixture
def mock_generation_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(
        return_value=Generation(
            id="gen_1",
            user_id="user_123",
            prompt="p",
            tokens_reserved=3,
            status=GenerationStatus.FAILED,
            error="provider rejected prompt",
            attempts=1,
        )
    )
    return repo


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return StatusTracker(freshness_seconds=30, clock=clock)


@pytest.fixture
def use_case(mock_generation_repo, tracker):
    return GetGenerationStatus(GetGeneration(mock_generation_repo), tracker)


@pytest.mark.asyncio
class TestGetGenerationStatus:

    async def test_served_from_tracker(self, use_case, tracker, mock_generation_repo):
        tracker.update("gen_1", status=GenerationStatus.PROCESSING, user_id="user_123", attempt=2)

        result = await use_case.execute("gen_1", "user_123")

        assert result.value.source == "tracker"
        assert result.value.status == "processing"
        assert result.value.attempt == 2
        mock_generation_repo.get_by_id.assert_not_awaited()

    async def test_falls_back_to_database(self, use_case, mock_generation_repo):
        result = await use_case.execute("gen_1", "user_123")

        assert result.value.source == "database"
        assert result.value.status == "failed"
        assert result.value.error == "provider rejected prompt"
        assert result.value.attempt == 1

    async def test_other_user_is_refused_even_when_tracked(self, use_case, tracker):
        tracker.update("gen_1", status=GenerationStatus.PROCESSING, user_id="user_123")

        result = await use_case.execute("gen_1", "intruder")

        assert result.is_err()
        assert result.error.code == ErrorCode.UNAUTHORIZED

    async def test_unknown_generation(self, use_case, mock_generation_repo):
        mock_generation_repo.get_by_id = AsyncMock(return_value=None)

        result = await use_case.execute("missing", "user_123")

        assert result.error.code == ErrorCode.GENERATION_NOT_FOUND

    async def test_stale_in_flight_entry_falls_back_to_database(
        self, use_case, tracker, clock, mock_generation_repo
    ):
        """
        Given: the tracker last saw the generation processing, and another
               process has since failed it in the database
        When: the status is polled after the freshness bound
        Then: the database answer is served and the tracker entry refreshed
        """
        # Arrange
        tracker.update("gen_1", status=GenerationStatus.PROCESSING, user_id="user_123")
        clock.now += 31

        # Act
        result = await use_case.execute("gen_1", "user_123")

        # Assert
        assert result.value.source == "database"
        assert result.value.status == "failed"
        assert tracker.get("gen_1").status == GenerationStatus.FAILED
        mock_generation_repo.get_by_id.assert_awaited_once()

    async def test_terminal_entry_is_trusted_regardless_of_age(
        self, use_case, tracker, clock, mock_generation_repo
    ):
        tracker.update("gen_1", status=GenerationStatus.COMPLETED, user_id="user_123")
        clock.now += 3600

        result = await use_case.execute("gen_1", "user_123")

        assert result.value.source == "tracker"
        assert result.value.status == "completed"
        mock_generation_repo.get_by_id.assert_not_awaited()
