"""
Action evaluator: compiles a program's next step into an ExecutableAction.

evaluate_action() looks at a program's op tree together with its current
state and returns the unit of work that moves it forward:

- Settled ops (done, or observed complete) compile to a no-side-effect
  action yielding a DoneEffect.
- seq ops recurse into the active child, advancing past children that are
  complete. Child i+1 is never evaluated before child i is done.
- par ops recurse into every child concurrently and join the results.
- Leaf ops are compiled by actionqueue_core.actions.leaf_ops.

Errors from providers and wallets propagate un-wrapped. The only place
they are caught is par execution, where every child is joined before the
lowest-index failure collapses the par into a failed DoneEffect.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from actionqueue_core.actions.effects import (
    ActionEffect,
    DoneEffect,
    ParEffect,
    SeqEffect,
    first_failure,
    is_failed,
)
from actionqueue_core.actions.leaf_ops import evaluate_leaf_op
from actionqueue_core.actions.ops import ActionOp, ParActionOp, SeqActionOp
from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    ExecutableAction,
    ExecutionOutput,
    PendingTxMap,
)
from actionqueue_protocols import BroadcastTx

if TYPE_CHECKING:
    from actionqueue_core.context import ExecutionContext

logger = logging.getLogger(__name__)


async def evaluate_action(
    context: "ExecutionContext",
    program: ActionProgram,
    state: ActionProgramState,
) -> ExecutableAction:
    """
    Compile the next step of a program.

    Args:
        context: Capabilities of the account running the program
        program: The program (or a child program of a composite op)
        state: Current execution state for that program

    Returns:
        ExecutableAction with dryrun() and execute()

    Raises:
        ActionValidationError: If the op cannot be executed as specified
    """
    op = program.action_op

    if isinstance(state.effect, DoneEffect):
        return settled_action(state.effect)
    if is_complete(op, state.effect, state.effective):
        return settled_action(DoneEffect())

    if isinstance(op, SeqActionOp):
        return await _evaluate_seq(context, program, state)
    if isinstance(op, ParActionOp):
        return await _evaluate_par(context, program, state)
    if program.mock_mode:
        return mock_action(program)
    return await evaluate_leaf_op(context, program)


def is_complete(op: ActionOp, effect: ActionEffect | None, effective: bool) -> bool:
    """
    Check whether an op has finished, given its effect and the effective flag.

    A leaf is complete once its recorded effect has been observed effective.
    A seq is complete when its last child is, a par when all children are.
    """
    if effect is None:
        return False
    if isinstance(effect, DoneEffect):
        return True
    if not effective:
        return False

    if isinstance(op, SeqActionOp):
        if not isinstance(effect, SeqEffect):
            return False
        active = effect.active_effect
        return (
            effect.op_index == len(op.actions) - 1
            and active is not None
            and is_complete(op.actions[effect.op_index], active, effective)
        )
    if isinstance(op, ParActionOp):
        if not isinstance(effect, ParEffect) or len(effect.child_effects) != len(op.actions):
            return False
        return all(
            is_complete(child_op, child_effect, effective)
            for child_op, child_effect in zip(op.actions, effect.child_effects)
        )
    return True


def settled_action(effect: DoneEffect) -> ExecutableAction:
    """Action for an op that has nothing left to do."""

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput:
        return ExecutionOutput(effect=effect)

    async def execute() -> ExecutionOutput:
        return ExecutionOutput(effect=effect)

    return ExecutableAction(dryrun=dryrun, execute=execute)


def mock_action(program: ActionProgram) -> ExecutableAction:
    """Action for a leaf op of a mock-mode program: finishes without side effects."""

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput:
        return ExecutionOutput(effect=DoneEffect())

    async def execute() -> ExecutionOutput:
        logger.info("Mock execution of %s (%s)", program.program_id, program.action_op.type)
        return ExecutionOutput(effect=DoneEffect())

    return ExecutableAction(dryrun=dryrun, execute=execute)


def _child(
    program: ActionProgram,
    state: ActionProgramState,
    index: int,
    effect: ActionEffect | None,
    effective: bool,
) -> tuple[ActionProgram, ActionProgramState]:
    """Build the program and state of a composite op's child."""
    child_program = ActionProgram(
        program_id=f"{program.program_id}[{index}]",
        action_op=program.action_op.actions[index],
        mock_mode=program.mock_mode,
    )
    child_state = state.model_copy(
        update={
            "program_id": child_program.program_id,
            "effect": effect,
            "effective": effective,
        }
    )
    return child_program, child_state


async def _evaluate_seq(
    context: "ExecutionContext",
    program: ActionProgram,
    state: ActionProgramState,
) -> ExecutableAction:
    op: SeqActionOp = program.action_op
    effect = state.effect if isinstance(state.effect, SeqEffect) else None

    op_index = effect.op_index if effect else 0
    child_effects = list(effect.child_effects) if effect else []
    child_effect = effect.active_effect if effect else None
    child_effective = state.effective

    if is_failed(child_effect):
        return settled_action(child_effect)

    # Move past a finished child; it stays recorded as done
    if child_effect is not None and is_complete(
        op.actions[op_index], child_effect, state.effective
    ):
        if not isinstance(child_effect, DoneEffect):
            child_effects[op_index] = DoneEffect()
        op_index += 1
        child_effect = None
        child_effective = False

    if op_index >= len(op.actions):
        return settled_action(DoneEffect())

    child_program, child_state = _child(program, state, op_index, child_effect, child_effective)
    child_action = await evaluate_action(context, child_program, child_state)

    finished = child_effects[:op_index]
    is_last = op_index == len(op.actions) - 1

    def wrap(output: ExecutionOutput) -> ExecutionOutput:
        result = output.effect
        if is_failed(result):
            pass
        elif isinstance(result, DoneEffect) and is_last:
            result = DoneEffect()
        else:
            result = SeqEffect(op_index=op_index, child_effects=[*finished, result])
        return ExecutionOutput(effect=result, broadcast_txs=output.broadcast_txs)

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        output = await child_action.dryrun(pending_tx_map)
        if output is None:
            return None
        return wrap(output)

    async def execute() -> ExecutionOutput:
        return wrap(await child_action.execute())

    return ExecutableAction(dryrun=dryrun, execute=execute)


async def _evaluate_par(
    context: "ExecutionContext",
    program: ActionProgram,
    state: ActionProgramState,
) -> ExecutableAction:
    op: ParActionOp = program.action_op
    count = len(op.actions)
    effect = state.effect if isinstance(state.effect, ParEffect) else None

    child_effects: list[ActionEffect | None] = [None] * count
    if effect is not None and len(effect.child_effects) == count:
        child_effects = list(effect.child_effects)

    failure = first_failure(child_effects)
    if failure is not None:
        return settled_action(failure)

    actions = await asyncio.gather(
        *(
            evaluate_action(
                context, *_child(program, state, index, child_effects[index], state.effective)
            )
            for index in range(count)
        )
    )

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        outputs = await asyncio.gather(*(action.dryrun(pending_tx_map) for action in actions))
        if any(output is None for output in outputs):
            return None
        return _join_par([output.effect for output in outputs], [])

    async def execute() -> ExecutionOutput:
        results = await asyncio.gather(
            *(action.execute() for action in actions), return_exceptions=True
        )
        effects: list[ActionEffect] = []
        broadcast_txs: list[BroadcastTx] = []
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "Child %s[%d] failed: %s", program.program_id, index, result
                )
                effects.append(DoneEffect.from_exception(result))
            else:
                effects.append(result.effect)
                broadcast_txs.extend(result.broadcast_txs)
        return _join_par(effects, broadcast_txs)

    return ExecutableAction(dryrun=dryrun, execute=execute)


def _join_par(effects: list[ActionEffect], broadcast_txs: list[BroadcastTx]) -> ExecutionOutput:
    """Combine joined child effects; the lowest-index failure wins."""
    failure = first_failure(effects)
    if failure is not None:
        return ExecutionOutput(effect=failure, broadcast_txs=broadcast_txs)
    if all(isinstance(child, DoneEffect) for child in effects):
        return ExecutionOutput(effect=DoneEffect(), broadcast_txs=broadcast_txs)
    return ExecutionOutput(effect=ParEffect(child_effects=effects), broadcast_txs=broadcast_txs)
