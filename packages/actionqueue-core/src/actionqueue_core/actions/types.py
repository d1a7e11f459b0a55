"""
Program and queue types for the action queue.

This module defines the core data structures for program execution:
- ActionProgram: Immutable program identity and op tree
- ActionProgramState: Mutable execution record of a program
- ActionQueueItem / ActionQueueMap: Durable queue entries keyed by program id
- ExecutionOutput: Result of dry-running or executing an action
- EffectCheckResult: Result of checking an effect
- ExecutableAction: Compiled unit with dryrun() and execute()
- PendingTxMap: Read-only snapshot of unconfirmed transactions per wallet

Per project patterns:
- Pydantic BaseModel for anything persisted (program, state, queue)
- Dataclasses for runtime-only values
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from actionqueue_core.actions.effects import ActionEffect, DoneEffect
from actionqueue_core.actions.ops import ActionOp
from actionqueue_protocols import BroadcastTx, WalletTx


class ActionProgram(BaseModel):
    """
    A declarative program to execute and observe to completion.

    Attributes:
        program_id: Unique identity of the program
        action_op: Root of the op tree
        mock_mode: Development flag - leaf ops finish without touching wallets
    """

    model_config = ConfigDict(frozen=True)

    program_id: str = Field(..., description="Unique program identifier")
    action_op: ActionOp = Field(..., description="Root op of the program")
    mock_mode: bool = Field(default=False, description="Simulate leaf ops")


class ActionProgramState(BaseModel):
    """
    Mutable execution record of a program.

    Created when a program is first queued; updated on every execution step
    and every effect check. Never deleted by the engine itself.

    Attributes:
        client_id: Device/client that owns the program
        program_id: The program this state belongs to
        effect: Current effect tree (None until the first execution)
        effective: Whether the recorded effect has been observed true
        executing: Whether an execution is in flight (re-entrancy guard)
        last_execution_time: Epoch ms of the last execution or check
        next_execution_time: Epoch ms when the program is next due
    """

    client_id: str = Field(..., description="Owning client id")
    program_id: str = Field(..., description="Program id")
    effect: ActionEffect | None = Field(default=None, description="Current effect tree")
    effective: bool = Field(default=False, description="Effect observed true")
    executing: bool = Field(default=False, description="Execution in flight")
    last_execution_time: int = Field(default=0, description="Epoch ms of last step")
    next_execution_time: int = Field(default=0, description="Epoch ms when next due")

    @property
    def is_done(self) -> bool:
        """True once the program reached its terminal done effect."""
        return isinstance(self.effect, DoneEffect)


class ActionQueueItem(BaseModel):
    """A queued program together with its execution state."""

    program: ActionProgram
    state: ActionProgramState


ActionQueueMap = dict[str, ActionQueueItem]
"""Queue entries keyed by program id."""

_queue_adapter = TypeAdapter(ActionQueueMap)


def dump_queue(queue: ActionQueueMap) -> dict[str, Any]:
    """Convert a queue map to JSON-compatible data for persistence."""
    return _queue_adapter.dump_python(queue, mode="json")


def load_queue(data: Mapping[str, Any]) -> ActionQueueMap:
    """
    Re-hydrate a persisted queue map.

    No execution can survive a restart, so every state comes back with
    executing=False.
    """
    queue = _queue_adapter.validate_python(dict(data))
    for item in queue.values():
        item.state.executing = False
    return queue


PendingTxMap = Mapping[str, list[WalletTx]]
"""Unconfirmed transactions per wallet id, passed read-only to dry-runs."""


@dataclass
class ExecutionOutput:
    """
    Output of an action's dryrun() or execute().

    Attributes:
        effect: Effect to watch for completion
        broadcast_txs: Transactions sent to the network (always empty for dry-runs)
    """

    effect: ActionEffect
    broadcast_txs: list[BroadcastTx] = field(default_factory=list)


@dataclass
class EffectCheckResult:
    """
    Result of checking an effect.

    Attributes:
        delay: Milliseconds to wait before checking again (advisory)
        is_effective: Whether the condition currently holds
        updated_effect: Replacement effect, when the check advanced it
    """

    delay: int
    is_effective: bool
    updated_effect: ActionEffect | None = None


@dataclass
class ExecutableAction:
    """
    An op compiled against the current program state.

    Attributes:
        dryrun: Simulate execution against pending transactions without side
            effects. Returns None when the action cannot run right now.
        execute: Perform the real side effects.
    """

    dryrun: Callable[[PendingTxMap], Awaitable[ExecutionOutput | None]]
    execute: Callable[[], Awaitable[ExecutionOutput]]
