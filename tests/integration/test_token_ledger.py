"""
Integration tests for TokenLedger

Tests cover:
- Conditional debit never drives the balance negative
- Refunds restore the balance and lifetime counters
- Idempotent purchases
- Usage history ordering and filtering
- Concurrent debits from separate sessions cannot double-spend
"""

import asyncio

import pytest

from image_studio.adapter.repositories import (
    SqlAlchemyUsageEntryRepository,
    SqlAlchemyUserAccountRepository,
)
from image_studio.app.errors import ErrorCode
from image_studio.app.use_cases.tokens import (
    AddTokensCommandDTO,
    ListUsageHistory,
    PurchaseTokens,
)
from image_studio.depends import build_token_ledger
from image_studio.domain.usage_entry import UsageAction


@pytest.mark.asyncio
class TestTokenLedgerIntegration:

    async def test_balance_never_negative(self, db_session, token_ledger, create_account):
        """
        Given: a balance of 5
        When: debits of 3, 3 and 2 are attempted in sequence
        Then: the second is rejected and the balance ends at 0
        """
        await create_account("user_1", 5)

        first = await token_ledger.debit("user_1", 3, generation_id=None, reason="a")
        second = await token_ledger.debit("user_1", 3, generation_id=None, reason="b")
        third = await token_ledger.debit("user_1", 2, generation_id=None, reason="c")

        assert first.value == 2
        assert second.error.code == ErrorCode.INSUFFICIENT_TOKENS
        assert third.value == 0
        account = await SqlAlchemyUserAccountRepository(db_session).get_by_id("user_1")
        assert account.token_balance == 0
        assert account.total_tokens_used == 5

    async def test_refund_restores_balance_and_usage(self, db_session, token_ledger, create_account):
        await create_account("user_1", 5)
        await token_ledger.debit("user_1", 3, generation_id="gen_1", reason="start")

        refunded = await token_ledger.credit(
            "user_1", 3, generation_id="gen_1", reason="refund", action=UsageAction.FAILED
        )

        assert refunded.value == 5
        stats = (await token_ledger.get_stats("user_1")).value
        assert stats.balance == 5
        assert stats.total_used == 0
        assert stats.total_purchased == 5

    async def test_purchase_is_idempotent(self, db_session, token_ledger, create_account):
        await create_account("user_1", 0)
        use_case = PurchaseTokens(token_ledger)
        order = AddTokensCommandDTO(user_id="user_1", amount=50, idempotency_key="order-42")

        first = await use_case.execute(order)
        replay = await use_case.execute(order)

        assert first.value.balance == 50
        assert replay.value.balance == 50
        assert replay.value.total_purchased == 50

    async def test_unknown_user(self, token_ledger):
        result = await token_ledger.debit("ghost", 1, generation_id=None, reason="x")

        assert result.error.code == ErrorCode.USER_NOT_FOUND

    async def test_usage_history(self, db_session, token_ledger, create_account):
        await create_account("user_1", 10)
        await token_ledger.debit("user_1", 3, generation_id="gen_1", reason="start")
        await token_ledger.credit("user_1", 3, generation_id="gen_1", action=UsageAction.CANCELLED)

        history = await ListUsageHistory(SqlAlchemyUsageEntryRepository(db_session)).execute("user_1")
        cancelled_only = await ListUsageHistory(SqlAlchemyUsageEntryRepository(db_session)).execute(
            "user_1", action=UsageAction.CANCELLED
        )

        assert len(history.value.entries) == 3
        assert sum(entry.amount for entry in history.value.entries) == 10
        assert [entry.action for entry in cancelled_only.value.entries] == ["cancelled"]

    async def test_concurrent_debits_have_a_single_winner(
        self, db_session, services, create_account
    ):
        """
        Given: a balance of 5
        When: five sessions each try to debit 5 tokens at the same time
        Then: exactly one succeeds, the others get INSUFFICIENT_TOKENS and
              the balance ends at 0 with a single debit entry
        """
        # Arrange
        await create_account("user_1", 5)

        async def debit(index: int):
            async with services.session_factory() as session:
                ledger = build_token_ledger(session)
                return await ledger.debit(
                    "user_1", 5, generation_id=f"gen_{index}", reason="concurrent"
                )

        # Act
        results = await asyncio.gather(*(debit(index) for index in range(5)))

        # Assert
        winners = [result for result in results if result.is_ok()]
        losers = [result for result in results if result.is_err()]
        assert len(winners) == 1
        assert winners[0].value == 0
        assert [loser.error.code for loser in losers] == [ErrorCode.INSUFFICIENT_TOKENS] * 4

        db_session.expire_all()
        account = await SqlAlchemyUserAccountRepository(db_session).get_by_id("user_1")
        assert account.token_balance == 0
        history = await ListUsageHistory(SqlAlchemyUsageEntryRepository(db_session)).execute(
            "user_1", action=UsageAction.STARTED
        )
        assert len(history.value.entries) == 1
