"""
Unit tests for HandleProviderCallback

Tests cover:
- Success callback completes and frees the queue slot
- Failure callback fails with a refund
- Callbacks for terminal generations are acknowledged without effect
- Losing a race against another terminal transition
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from libs.result import Error, Return
from image_studio.app.errors import ErrorCode
from image_studio.app.use_cases.generation.dtos import ProviderCallbackDTO
from image_studio.app.use_cases.generation.handle_provider_callback import HandleProviderCallback
from image_studio.domain.generation import Generation, GenerationStatus


def generation(status: GenerationStatus) -> Generation:
    return Generation(id="gen_1", user_id="user_123", prompt="p", tokens_reserved=3, status=status)


@pytest.fixture
def mock_state_machine():
    machine = MagicMock()
    machine.get = AsyncMock(return_value=Return.ok(generation(GenerationStatus.PROCESSING)))
    machine.complete = AsyncMock(return_value=Return.ok(generation(GenerationStatus.COMPLETED)))
    machine.fail = AsyncMock(return_value=Return.ok(generation(GenerationStatus.FAILED)))
    return machine


@pytest.fixture
def mock_queue():
    queue = MagicMock()
    queue.dequeue = AsyncMock(return_value=True)
    return queue


@pytest.fixture
def use_case(mock_state_machine, mock_queue):
    return HandleProviderCallback(mock_state_machine, mock_queue)


@pytest.mark.asyncio
class TestHandleProviderCallback:

    async def test_success_completes(self, use_case, mock_state_machine, mock_queue):
        command = ProviderCallbackDTO(generation_id="gen_1", success=True, result_refs=["ref/a.png"])

        result = await use_case.execute(command)

        assert result.value.applied
        assert result.value.status == "completed"
        mock_state_machine.complete.assert_awaited_once_with("gen_1", ["ref/a.png"])
        mock_queue.dequeue.assert_awaited_once_with("gen_1")

    async def test_failure_fails_with_default_message(self, use_case, mock_state_machine):
        command = ProviderCallbackDTO(generation_id="gen_1", success=False)

        result = await use_case.execute(command)

        assert result.value.status == "failed"
        mock_state_machine.fail.assert_awaited_once_with("gen_1", "Provider reported a failure")

    @pytest.mark.parametrize("status", [GenerationStatus.CANCELLED, GenerationStatus.COMPLETED])
    async def test_terminal_generation_is_not_changed(self, use_case, mock_state_machine, mock_queue, status):
        """
        Given: the user cancelled the generation
        When: the provider later reports success
        Then: nothing changes and no charge happens
        """
        mock_state_machine.get = AsyncMock(return_value=Return.ok(generation(status)))
        command = ProviderCallbackDTO(generation_id="gen_1", success=True, result_refs=["ref/a.png"])

        result = await use_case.execute(command)

        assert not result.value.applied
        assert result.value.status == status.value
        mock_state_machine.complete.assert_not_awaited()
        mock_queue.dequeue.assert_not_awaited()

    async def test_race_lost_to_concurrent_cancel(self, use_case, mock_state_machine):
        mock_state_machine.get = AsyncMock(side_effect=[
            Return.ok(generation(GenerationStatus.PROCESSING)),
            Return.ok(generation(GenerationStatus.CANCELLED)),
        ])
        mock_state_machine.complete = AsyncMock(
            return_value=Return.err(Error(code=ErrorCode.INVALID_TRANSITION, message="lost"))
        )
        command = ProviderCallbackDTO(generation_id="gen_1", success=True, result_refs=["ref/a.png"])

        result = await use_case.execute(command)

        assert result.is_ok()
        assert not result.value.applied
        assert result.value.status == "cancelled"

    async def test_unknown_generation(self, use_case, mock_state_machine):
        mock_state_machine.get = AsyncMock(
            return_value=Return.err(Error(code=ErrorCode.GENERATION_NOT_FOUND, message="missing"))
        )

        result = await use_case.execute(ProviderCallbackDTO(generation_id="nope", success=True))

        assert result.error.code == ErrorCode.GENERATION_NOT_FOUND
