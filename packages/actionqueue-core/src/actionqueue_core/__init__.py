"""
Action Queue Core Library

Execution engine for declarative action programs on a crypto wallet
account. This package provides:

- Action language: ops (seq, par, swaps, loans, fiat ramp, broadcasts)
  and the effects that signal their completion
- Evaluator and effect checker bound to an ExecutionContext
- ActionQueueScheduler: per-program state machine and daemon loop
- Queue persistence, display info, and a Typer-based CLI
"""

__version__ = "0.1.0"

# Re-export public types for convenient imports
from actionqueue_core.actions import (
    ActionEffect,
    ActionError,
    ActionOp,
    ActionProgram,
    ActionProgramState,
    ActionQueueItem,
    ActionQueueMap,
    ActionValidationError,
    DoneEffect,
    EffectCheckResult,
    ExecutableAction,
    ExecutionOutput,
)
from actionqueue_core.config import Settings
from actionqueue_core.context import ExecutionContext
from actionqueue_core.display import ActionDisplayInfo, get_action_display_info
from actionqueue_core.events import PushEventRegistry
from actionqueue_core.rates import HttpRateClient
from actionqueue_core.scheduler import ActionQueueScheduler, RetryConfig

# Re-export the capability layer's resource error for convenience
from actionqueue_protocols import InsufficientFundsError

__all__ = [
    "__version__",
    # Action language
    "ActionOp",
    "ActionEffect",
    "ActionError",
    "DoneEffect",
    "ActionProgram",
    "ActionProgramState",
    "ActionQueueItem",
    "ActionQueueMap",
    # Runtime
    "ExecutionContext",
    "ExecutableAction",
    "ExecutionOutput",
    "EffectCheckResult",
    "PushEventRegistry",
    "HttpRateClient",
    "Settings",
    # Scheduler
    "ActionQueueScheduler",
    "RetryConfig",
    # Display
    "ActionDisplayInfo",
    "get_action_display_info",
    # Errors
    "ActionValidationError",
    "InsufficientFundsError",
]
