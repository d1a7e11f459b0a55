"""
Display information for action programs.

get_action_display_info() turns a program and its state into a tree of
ActionDisplayInfo records (title, message, status, steps) for UIs and the
CLI. The tree mirrors the op tree:

- seq children before op_index are done, the one at op_index is active,
  later children are pending
- par children follow their own effects
- a failed program reports its ActionError as status; cancelled programs
  are done
"""

from typing import Literal

from pydantic import BaseModel, Field

from actionqueue_core.actions.effects import ActionEffect, ActionError, DoneEffect, ParEffect, SeqEffect
from actionqueue_core.actions.ops import (
    ActionOp,
    BroadcastTxActionOp,
    ParActionOp,
    SeqActionOp,
    SwapActionOp,
    WyreSellActionOp,
)
from actionqueue_core.actions.types import ActionProgram, ActionProgramState

DisplayStatus = Literal["pending", "active", "done"] | ActionError


class ActionDisplayInfo(BaseModel):
    """Human-readable summary of an op and its progress."""

    title: str
    message: str
    status: DisplayStatus
    steps: list["ActionDisplayInfo"] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return isinstance(self.status, ActionError)


ActionDisplayInfo.model_rebuild()

_TITLES = {
    "seq": "Sequence",
    "par": "Parallel",
    "broadcast-tx": "Broadcast Transaction",
    "wyre-buy": "Buy with Wyre",
    "wyre-sell": "Sell with Wyre",
    "loan-borrow": "Borrow",
    "loan-deposit": "Deposit Collateral",
    "loan-repay": "Repay Loan",
    "loan-withdraw": "Withdraw Collateral",
    "swap": "Swap",
}


def get_action_display_info(program: ActionProgram, state: ActionProgramState) -> ActionDisplayInfo:
    """Build the display tree for a queued program."""
    return _display(program.action_op, state.effect, started=state.effect is not None)


def _amount(native_amount: str, token_id: str | None) -> str:
    return f"{native_amount} {token_id}" if token_id else native_amount


def _message(op: ActionOp) -> str:
    if isinstance(op, SeqActionOp):
        return f"{len(op.actions)} steps"
    if isinstance(op, ParActionOp):
        return f"{len(op.actions)} actions at once"
    if isinstance(op, BroadcastTxActionOp):
        return f"Broadcast a signed {op.plugin_id} transaction"
    if isinstance(op, SwapActionOp):
        if op.amount_for == "from":
            amount = f"exactly {_amount(op.native_amount, op.from_token_id)}"
        else:
            amount = f"enough to receive {_amount(op.native_amount, op.to_token_id)}"
        return f"Swap {amount} from wallet {op.from_wallet_id} to wallet {op.to_wallet_id}"
    if isinstance(op, WyreSellActionOp):
        return f"Sell {_amount(op.native_amount, op.token_id)} from wallet {op.wallet_id}"
    if op.type == "wyre-buy":
        return f"Buy {_amount(op.native_amount, op.token_id)} into wallet {op.wallet_id}"

    verb = {
        "loan-borrow": "Borrow",
        "loan-deposit": "Deposit",
        "loan-repay": "Repay",
        "loan-withdraw": "Withdraw",
    }[op.type]
    return f"{verb} {_amount(op.native_amount, op.token_id)} with {op.borrow_plugin_id}"


def _status(effect: ActionEffect | None, started: bool) -> DisplayStatus:
    if isinstance(effect, DoneEffect):
        return effect.error if effect.error is not None else "done"
    return "active" if started else "pending"


def _display(op: ActionOp, effect: ActionEffect | None, started: bool) -> ActionDisplayInfo:
    steps: list[ActionDisplayInfo] = []
    if isinstance(op, SeqActionOp):
        steps = [
            _display(child, child_effect, child_started)
            for child, (child_effect, child_started) in zip(op.actions, _seq_children(op, effect))
        ]
    elif isinstance(op, ParActionOp):
        steps = [
            _display(child, child_effect, child_started)
            for child, (child_effect, child_started) in zip(op.actions, _par_children(op, effect))
        ]

    return ActionDisplayInfo(
        title=_TITLES[op.type],
        message=_message(op),
        status=_status(effect, started),
        steps=steps,
    )


def _seq_children(op: SeqActionOp, effect: ActionEffect | None) -> list[tuple[ActionEffect | None, bool]]:
    count = len(op.actions)
    if isinstance(effect, DoneEffect):
        if effect.error is None and not effect.cancelled:
            return [(DoneEffect(), True)] * count
        return [(None, False)] * count
    if not isinstance(effect, SeqEffect):
        return [(None, False)] * count

    children: list[tuple[ActionEffect | None, bool]] = []
    for index in range(count):
        if index < effect.op_index:
            children.append((DoneEffect(), True))
        elif index == effect.op_index:
            children.append((effect.active_effect, True))
        else:
            children.append((None, False))
    return children


def _par_children(op: ParActionOp, effect: ActionEffect | None) -> list[tuple[ActionEffect | None, bool]]:
    count = len(op.actions)
    if isinstance(effect, DoneEffect):
        if effect.error is None and not effect.cancelled:
            return [(DoneEffect(), True)] * count
        return [(None, False)] * count
    if isinstance(effect, ParEffect) and len(effect.child_effects) == count:
        return [(child, True) for child in effect.child_effects]
    return [(None, False)] * count
