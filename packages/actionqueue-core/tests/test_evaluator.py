"""
Tests for evaluate_action on composite ops.

Tests cover:
- seq advances strictly in order and never re-executes finished children
- par fans out, joins, and collapses failures to the lowest index
- settled programs compile to side-effect-free done actions
- mock mode finishes leaves without touching the account
- is_complete rules for leaves and composites
"""

from unittest.mock import AsyncMock

import pytest

from actionqueue_core.actions.effects import (
    ActionError,
    DoneEffect,
    ParEffect,
    SeqEffect,
    TxConfsEffect,
)
from actionqueue_core.actions.evaluator import evaluate_action, is_complete
from actionqueue_core.actions.ops import (
    BroadcastTxActionOp,
    ParActionOp,
    SeqActionOp,
    SwapActionOp,
    WyreSellActionOp,
)
from actionqueue_core.actions.types import ActionProgram, ActionProgramState
from actionqueue_protocols import InsufficientFundsError, WalletTx


def sell(amount="1000"):
    return WyreSellActionOp(native_amount=amount, wallet_id="btc-wallet", wyre_account_id="acct")


def swap_op():
    return SwapActionOp(
        amount_for="from", from_wallet_id="eth-wallet", to_wallet_id="btc-wallet", native_amount="5"
    )


def state(effect=None, effective=False):
    return ActionProgramState(
        client_id="test-client", program_id="p1", effect=effect, effective=effective
    )


def program(op, mock_mode=False):
    return ActionProgram(program_id="p1", action_op=op, mock_mode=mock_mode)


class TestSeq:
    """Tests for seq evaluation."""

    @pytest.mark.asyncio
    async def test_first_execution_targets_first_child(self, context, account):
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]))

        action = await evaluate_action(context, prog, state())
        output = await action.execute()

        assert output.effect == SeqEffect(
            op_index=0, child_effects=[TxConfsEffect(tx_id="tx-1", wallet_id="btc-wallet")]
        )
        assert [info.spend_targets[0].native_amount for _, info in account.spends] == ["1"]

    @pytest.mark.asyncio
    async def test_advances_after_child_effective(self, context, account):
        """After opA's effect is effective, evaluation targets opB without re-running opA."""
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]))
        first = await (await evaluate_action(context, prog, state())).execute()

        action = await evaluate_action(context, prog, state(first.effect, effective=True))
        output = await action.execute()

        assert output.effect == SeqEffect(
            op_index=1,
            child_effects=[DoneEffect(), TxConfsEffect(tx_id="tx-2", wallet_id="btc-wallet")],
        )
        assert [info.spend_targets[0].native_amount for _, info in account.spends] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_not_effective_child_is_not_skipped(self, context, account):
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]))
        first = await (await evaluate_action(context, prog, state())).execute()

        # Re-evaluating while still pending stays on the first child
        action = await evaluate_action(context, prog, state(first.effect, effective=False))
        preview = await action.dryrun({})

        assert preview.effect.op_index == 0

    @pytest.mark.asyncio
    async def test_done_after_last_child_complete(self, context, account):
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]))
        effect = SeqEffect(
            op_index=1,
            child_effects=[DoneEffect(), TxConfsEffect(tx_id="tx-2", wallet_id="btc-wallet")],
        )

        action = await evaluate_action(context, prog, state(effect, effective=True))
        output = await action.execute()

        assert output.effect == DoneEffect()
        assert account.spends == []

    @pytest.mark.asyncio
    async def test_mock_mode_runs_to_done(self, context, account):
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]), mock_mode=True)

        first = await (await evaluate_action(context, prog, state())).execute()
        assert first.effect == SeqEffect(op_index=0, child_effects=[DoneEffect()])

        second = await (await evaluate_action(context, prog, state(first.effect))).execute()
        assert second.effect == DoneEffect()
        assert account.spends == []

    @pytest.mark.asyncio
    async def test_op_index_never_decreases(self, context):
        prog = program(SeqActionOp(actions=[sell("1"), sell("2"), sell("3")]), mock_mode=True)
        current = state()
        indexes = []

        for _ in range(5):
            output = await (await evaluate_action(context, prog, current)).execute()
            if isinstance(output.effect, SeqEffect):
                indexes.append(output.effect.op_index)
            current = state(output.effect)
            if isinstance(output.effect, DoneEffect):
                break

        assert indexes == sorted(indexes)
        assert max(indexes) <= 2
        assert current.effect == DoneEffect()

    @pytest.mark.asyncio
    async def test_child_execute_error_propagates(self, context, account):
        account.fail_spend = InsufficientFundsError("BTC")
        prog = program(SeqActionOp(actions=[sell("1")]))

        action = await evaluate_action(context, prog, state())

        with pytest.raises(InsufficientFundsError):
            await action.execute()

    @pytest.mark.asyncio
    async def test_failed_child_collapses_sequence(self, context, account):
        failed = DoneEffect(error=ActionError(name="InsufficientFundsError"))
        prog = program(SeqActionOp(actions=[sell("1"), sell("2")]))
        effect = SeqEffect(op_index=0, child_effects=[failed])

        action = await evaluate_action(context, prog, state(effect))

        assert (await action.execute()).effect == failed
        assert account.spends == []


class TestPar:
    """Tests for par evaluation."""

    @pytest.mark.asyncio
    async def test_executes_all_children(self, context, account, swap):
        prog = program(ParActionOp(actions=[sell("1"), swap_op()]))

        output = await (await evaluate_action(context, prog, state())).execute()

        assert isinstance(output.effect, ParEffect)
        assert len(output.effect.child_effects) == 2
        assert isinstance(output.effect.child_effects[0], TxConfsEffect)
        assert [b.tx.tx_id for b in output.broadcast_txs] == ["tx-1", "swap-tx"]

    @pytest.mark.asyncio
    async def test_failure_keeps_successful_broadcasts(self, context, account):
        account.fail_spend = InsufficientFundsError("BTC")
        prog = program(ParActionOp(actions=[swap_op(), sell("1")]))

        output = await (await evaluate_action(context, prog, state())).execute()

        assert output.effect.error.name == "InsufficientFundsError"
        assert [b.tx.tx_id for b in output.broadcast_txs] == ["swap-tx"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "order, expected",
        [
            (["broadcast", "sell"], "RuntimeError"),
            (["sell", "broadcast"], "InsufficientFundsError"),
        ],
    )
    async def test_lowest_index_failure_wins(self, context, account, order, expected):
        account.fail_spend = InsufficientFundsError("BTC")
        account.broadcast_raw_tx = AsyncMock(side_effect=RuntimeError("node rejected"))
        ops = {"broadcast": BroadcastTxActionOp(plugin_id="ethereum", raw_tx="00"), "sell": sell()}
        prog = program(ParActionOp(actions=[ops[name] for name in order]))

        output = await (await evaluate_action(context, prog, state())).execute()

        assert isinstance(output.effect, DoneEffect)
        assert output.effect.error.name == expected

    @pytest.mark.asyncio
    async def test_dryrun_none_if_any_child_cannot_run(self, context):
        prog = program(ParActionOp(actions=[swap_op(), sell()]))
        pending = {
            "btc-wallet": [
                WalletTx(tx_id="x", wallet_id="btc-wallet", currency_code="BTC", native_amount="-1")
            ]
        }

        action = await evaluate_action(context, prog, state())

        assert await action.dryrun(pending) is None

    @pytest.mark.asyncio
    async def test_dryrun_never_broadcasts(self, context, account, swap):
        prog = program(ParActionOp(actions=[sell(), swap_op()]))

        output = await (await evaluate_action(context, prog, state())).dryrun({})

        assert output.broadcast_txs == []
        assert account.broadcasts == []
        assert not any(quote.approved for quote in swap.quotes)

    @pytest.mark.asyncio
    async def test_done_when_all_children_complete(self, context, account):
        prog = program(ParActionOp(actions=[sell("1"), sell("2")]))
        effect = ParEffect(
            child_effects=[
                TxConfsEffect(tx_id="tx-1", wallet_id="btc-wallet"),
                DoneEffect(),
            ]
        )

        output = await (await evaluate_action(context, prog, state(effect, effective=True))).execute()

        assert output.effect == DoneEffect()
        assert account.spends == []

    @pytest.mark.asyncio
    async def test_mock_mode_par_is_done_in_one_step(self, context):
        prog = program(ParActionOp(actions=[sell("1"), swap_op()]), mock_mode=True)

        output = await (await evaluate_action(context, prog, state())).execute()

        assert output.effect == DoneEffect()


class TestSettled:
    """Tests for programs with nothing left to do."""

    @pytest.mark.asyncio
    async def test_done_state_returns_recorded_effect(self, context, account):
        cancelled = DoneEffect(cancelled=True)

        action = await evaluate_action(context, program(sell()), state(cancelled, effective=True))

        assert (await action.dryrun({})).effect == cancelled
        assert (await action.execute()).effect == cancelled
        assert account.spends == []

    @pytest.mark.asyncio
    async def test_effective_leaf_is_done(self, context, account):
        effect = TxConfsEffect(tx_id="tx-1", wallet_id="btc-wallet")

        action = await evaluate_action(context, program(sell()), state(effect, effective=True))

        assert (await action.execute()).effect == DoneEffect()
        assert account.spends == []


class TestIsComplete:
    """Tests for the completeness rules."""

    def test_leaf(self):
        effect = TxConfsEffect(tx_id="t", wallet_id="w")

        assert not is_complete(sell(), None, True)
        assert not is_complete(sell(), effect, False)
        assert is_complete(sell(), effect, True)
        assert is_complete(sell(), DoneEffect(), False)

    def test_seq_needs_last_child(self):
        op = SeqActionOp(actions=[sell(), sell()])
        leaf = TxConfsEffect(tx_id="t", wallet_id="w")

        assert not is_complete(op, SeqEffect(op_index=0, child_effects=[leaf]), True)
        assert is_complete(op, SeqEffect(op_index=1, child_effects=[DoneEffect(), leaf]), True)
        assert not is_complete(op, SeqEffect(op_index=1, child_effects=[DoneEffect()]), True)

    def test_par_needs_every_child(self):
        op = ParActionOp(actions=[sell(), sell()])
        leaf = TxConfsEffect(tx_id="t", wallet_id="w")

        assert is_complete(op, ParEffect(child_effects=[leaf, DoneEffect()]), True)
        assert not is_complete(op, ParEffect(child_effects=[leaf]), True)
        assert not is_complete(op, ParEffect(child_effects=[leaf, leaf]), False)
