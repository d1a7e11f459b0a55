"""
Tests for get_action_display_info.

Tests cover:
- Titles and messages per op type
- seq children split into done / active / pending by op_index
- par children follow their own effects
- Failed and cancelled programs
"""

from actionqueue_core.actions.effects import (
    ActionError,
    DoneEffect,
    ParEffect,
    SeqEffect,
    TxConfsEffect,
)
from actionqueue_core.actions.ops import (
    LoanBorrowActionOp,
    ParActionOp,
    SeqActionOp,
    SwapActionOp,
    WyreBuyActionOp,
    WyreSellActionOp,
)
from actionqueue_core.actions.types import ActionProgram, ActionProgramState
from actionqueue_core.display import get_action_display_info


def display(op, effect=None):
    program = ActionProgram(program_id="p1", action_op=op)
    state = ActionProgramState(client_id="c", program_id="p1", effect=effect)
    return get_action_display_info(program, state)


def sell(amount="1"):
    return WyreSellActionOp(native_amount=amount, wallet_id="btc-wallet", wyre_account_id="acct")


class TestMessages:
    """Tests for leaf titles and messages."""

    def test_wyre_buy(self):
        info = display(WyreBuyActionOp(native_amount="1000", wallet_id="w"))

        assert info.title == "Buy with Wyre"
        assert info.message == "Buy 1000 into wallet w"
        assert info.status == "pending"
        assert info.steps == []

    def test_loan_with_token(self):
        op = LoanBorrowActionOp(
            borrow_plugin_id="aave", native_amount="100", wallet_id="w", token_id="USDC"
        )

        info = display(op)

        assert info.title == "Borrow"
        assert info.message == "Borrow 100 USDC with aave"

    def test_swap_amount_for_destination(self):
        op = SwapActionOp(amount_for="to", from_wallet_id="a", to_wallet_id="b", native_amount="5")

        assert display(op).message == "Swap enough to receive 5 from wallet a to wallet b"


class TestStatus:
    """Tests for status reporting across the tree."""

    def test_seq_in_progress(self):
        op = SeqActionOp(actions=[sell("1"), sell("2"), sell("3")])
        effect = SeqEffect(
            op_index=1,
            child_effects=[DoneEffect(), TxConfsEffect(tx_id="t", wallet_id="btc-wallet")],
        )

        info = display(op, effect)

        assert info.title == "Sequence"
        assert info.message == "3 steps"
        assert info.status == "active"
        assert [step.status for step in info.steps] == ["done", "active", "pending"]

    def test_par_children_follow_own_effects(self):
        op = ParActionOp(actions=[sell("1"), sell("2")])
        effect = ParEffect(
            child_effects=[DoneEffect(), TxConfsEffect(tx_id="t", wallet_id="btc-wallet")]
        )

        info = display(op, effect)

        assert [step.status for step in info.steps] == ["done", "active"]

    def test_done_program_marks_every_step_done(self):
        op = SeqActionOp(actions=[sell("1"), sell("2")])

        info = display(op, DoneEffect())

        assert info.status == "done"
        assert [step.status for step in info.steps] == ["done", "done"]

    def test_failed_program_reports_error(self):
        error = ActionError(name="InsufficientFundsError", message="Insufficient funds BTC")
        op = SeqActionOp(actions=[sell("1"), sell("2")])

        info = display(op, DoneEffect(error=error))

        assert info.failed
        assert info.status == error
        assert [step.status for step in info.steps] == ["pending", "pending"]

    def test_cancelled_program_is_done(self):
        info = display(sell(), DoneEffect(cancelled=True))

        assert info.status == "done"
        assert not info.failed
