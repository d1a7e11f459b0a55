"""
Actions module for the action program engine.

This module provides the program language and its interpreter:
- ActionOp: Declarative op tree (seq, par, and leaf financial ops)
- ActionEffect: Observable completion conditions
- ActionProgram / ActionProgramState: Program identity and execution record
- ActionQueueItem / ActionQueueMap: Durable queue entries
- evaluate_action: Compile a program's next step into an ExecutableAction
- check_action_effect: Observe whether an effect holds
- ActionValidationError and subclasses: Errors raised before any side effect

Exports:
    SeqActionOp, ParActionOp, BroadcastTxActionOp, WyreBuyActionOp,
    WyreSellActionOp, LoanBorrowActionOp, LoanDepositActionOp,
    LoanRepayActionOp, LoanWithdrawActionOp, SwapActionOp: Op models
    SeqEffect, ParEffect, AddressBalanceEffect, PriceLevelEffect,
    TxConfsEffect, PushEventEffect, DoneEffect: Effect models
    ActionError: Serializable error record carried by DoneEffect
    ExecutableAction, ExecutionOutput, EffectCheckResult: Runtime results
    dump_queue, load_queue: Queue map (de)serialization
"""

from actionqueue_core.actions.checker import check_action_effect, is_within_bounds
from actionqueue_core.actions.effects import (
    ActionEffect,
    ActionError,
    AddressBalanceEffect,
    DoneEffect,
    ParEffect,
    PriceLevelEffect,
    PushEventEffect,
    SeqEffect,
    TxConfsEffect,
)
from actionqueue_core.actions.evaluator import evaluate_action, is_complete
from actionqueue_core.actions.exceptions import (
    ActionValidationError,
    BorrowPluginNotFoundError,
    CurrencyMismatchError,
    ProviderUnavailableError,
    WalletMismatchError,
    WalletNotFoundError,
)
from actionqueue_core.actions.ops import (
    ActionOp,
    BroadcastTxActionOp,
    LoanBorrowActionOp,
    LoanDepositActionOp,
    LoanRepayActionOp,
    LoanWithdrawActionOp,
    ParActionOp,
    SeqActionOp,
    SwapActionOp,
    WyreBuyActionOp,
    WyreSellActionOp,
)
from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    ActionQueueItem,
    ActionQueueMap,
    EffectCheckResult,
    ExecutableAction,
    ExecutionOutput,
    PendingTxMap,
    dump_queue,
    load_queue,
)

__all__ = [
    # Ops
    "ActionOp",
    "SeqActionOp",
    "ParActionOp",
    "BroadcastTxActionOp",
    "WyreBuyActionOp",
    "WyreSellActionOp",
    "LoanBorrowActionOp",
    "LoanDepositActionOp",
    "LoanRepayActionOp",
    "LoanWithdrawActionOp",
    "SwapActionOp",
    # Effects
    "ActionEffect",
    "ActionError",
    "SeqEffect",
    "ParEffect",
    "AddressBalanceEffect",
    "PriceLevelEffect",
    "TxConfsEffect",
    "PushEventEffect",
    "DoneEffect",
    # Programs
    "ActionProgram",
    "ActionProgramState",
    "ActionQueueItem",
    "ActionQueueMap",
    "dump_queue",
    "load_queue",
    # Runtime
    "ExecutableAction",
    "ExecutionOutput",
    "EffectCheckResult",
    "PendingTxMap",
    "evaluate_action",
    "check_action_effect",
    "is_complete",
    "is_within_bounds",
    # Errors
    "ActionValidationError",
    "WalletNotFoundError",
    "WalletMismatchError",
    "CurrencyMismatchError",
    "BorrowPluginNotFoundError",
    "ProviderUnavailableError",
]
