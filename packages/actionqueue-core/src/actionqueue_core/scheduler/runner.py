"""
ActionQueueScheduler: drives queued programs through their state machine.

Each program moves Idle -> Executing -> Pending -> Effective, repeating
for composite ops, until it reaches a terminal done effect:

- Idle or effective programs are evaluated, dry-run against a snapshot of
  pending transactions, then executed. The resulting effect is stored and
  checked immediately.
- Pending programs are polled through the effect checker at the cadence
  the checker asks for.
- Errors raised by execute() are terminal. Validation and resource errors
  raised before any side effect are terminal too. Anything else raised
  by evaluation, dry-run or checking is transient and retried with
  exponential backoff.
- Cancellation overrides the effect tree with done(cancelled=True); an
  in-flight execution finishes but its result is discarded.
- Checks and executions both run with executing=True, so a program is
  never stepped twice at once. A step that raises anyway (store or update
  hook errors) is logged and retried later; the run loop keeps going.

Per project patterns (daemon loop):
- asyncio.Event for shutdown coordination
- Signal handlers registered inside run() with get_running_loop()
- wait_for with timeout for interruptible sleep
"""

import asyncio
import functools
import logging
import signal
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from actionqueue_core.actions.effects import ActionEffect, DoneEffect
from actionqueue_core.actions.exceptions import ActionValidationError
from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    ActionQueueItem,
    ActionQueueMap,
    PendingTxMap,
    load_queue,
)
from actionqueue_core.context import ExecutionContext
from actionqueue_core.db.queue import ActionQueueDB
from actionqueue_core.scheduler.retry import RetryConfig
from actionqueue_protocols import BroadcastTx, InsufficientFundsError, WalletTx

logger = logging.getLogger(__name__)

UpdateHook = Callable[[ActionQueueItem], Awaitable[None]]

# Raised before any side effect; retrying cannot help
TERMINAL_ERRORS = (ActionValidationError, InsufficientFundsError)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class ActionQueueScheduler:
    """
    Scheduler for the programs of one account.

    Example:
        context = ExecutionContext(account=account, client_id="device-1")
        async with ActionQueueDB(settings.db_path) as db:
            scheduler = ActionQueueScheduler(context, store=db)
            scheduler.load(await db.load_queue())
            await scheduler.add_program(program)
            await scheduler.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        context: ExecutionContext,
        queue: ActionQueueMap | None = None,
        store: ActionQueueDB | None = None,
        clock: Callable[[], int] | None = None,
        retry_config: RetryConfig | None = None,
        on_update: UpdateHook | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            context: Capabilities of the account running the programs
            queue: Existing queue map (already loaded), empty by default
            store: Database that receives every state change
            clock: Returns epoch ms, time.time() by default
            retry_config: Backoff for transient failures, from settings by default
            on_update: Async hook called with each changed queue item
        """
        self.context = context
        self.queue: ActionQueueMap = queue if queue is not None else {}
        self.store = store
        self.retry_config = retry_config or RetryConfig.from_settings(context.settings)
        self.on_update = on_update
        self._clock = clock or now_ms
        self._shutdown = asyncio.Event()

        # program id -> wallet id -> broadcast txs awaiting confirmation
        self._pending_txs: dict[str, dict[str, list[WalletTx]]] = {}
        # program id -> consecutive transient failures
        self._attempts: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Queue management
    # -------------------------------------------------------------------------

    def load(self, queue: Mapping[str, Any]) -> None:
        """
        Re-hydrate a persisted queue map into the scheduler.

        Accepts queue items or their JSON form. Every state comes back
        with executing=False.
        """
        self.queue.update(load_queue(queue))

    async def add_program(self, program: ActionProgram) -> ActionQueueItem:
        """
        Queue a new program in the Idle state.

        Raises:
            ValueError: If a program with the same id is already queued
        """
        if program.program_id in self.queue:
            raise ValueError(f"Program '{program.program_id}' is already queued")

        state = ActionProgramState(
            client_id=self.context.client_id,
            program_id=program.program_id,
            next_execution_time=self._clock(),
        )
        item = ActionQueueItem(program=program, state=state)
        self.queue[program.program_id] = item
        logger.info("Queued program %s (%s)", program.program_id, program.action_op.type)
        await self._commit(item)
        return item

    async def cancel_program(self, program_id: str) -> ActionProgramState:
        """
        Cancel a program, whatever state it is in.

        An in-flight execution is not interrupted; its result is discarded
        when it returns.

        Raises:
            KeyError: If the program is not queued
        """
        item = self._get(program_id)
        item.state.effect = DoneEffect(cancelled=True)
        item.state.effective = True
        self._release_pending_txs(program_id)
        self._attempts.pop(program_id, None)
        logger.info("Cancelled program %s", program_id)
        await self._commit(item)
        return item.state

    def pending_tx_snapshot(self) -> PendingTxMap:
        """Read-only snapshot of unconfirmed broadcast transactions per wallet."""
        merged: dict[str, list[WalletTx]] = {}
        for wallets in self._pending_txs.values():
            for wallet_id, txs in wallets.items():
                merged.setdefault(wallet_id, []).extend(txs)
        return MappingProxyType(merged)

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def is_due(self, state: ActionProgramState, now: int | None = None) -> bool:
        """Return True if a program should be stepped at time now."""
        if now is None:
            now = self._clock()
        return not state.is_done and not state.executing and state.next_execution_time <= now

    async def step(self, program_id: str) -> ActionProgramState:
        """
        Run one state transition for a program.

        Terminal, executing and not-yet-due programs are left untouched.

        Raises:
            KeyError: If the program is not queued
        """
        item = self._get(program_id)
        now = self._clock()
        if not self.is_due(item.state, now):
            return item.state

        if item.state.effect is not None and not item.state.effective:
            await self._check(item, now)
        else:
            await self._execute(item, now)
        return item.state

    async def tick(self) -> int:
        """
        Step every due program concurrently.

        A step that raises (store or update hook failure) is logged and
        the program is retried after a backoff delay; other programs are
        unaffected.

        Returns:
            Number of programs stepped
        """
        now = self._clock()
        due = [
            program_id for program_id, item in self.queue.items() if self.is_due(item.state, now)
        ]
        if due:
            results = await asyncio.gather(
                *(self.step(program_id) for program_id in due), return_exceptions=True
            )
            for program_id, result in zip(due, results):
                if isinstance(result, Exception):
                    self._step_failed(program_id, result)
                elif isinstance(result, BaseException):
                    raise result
        return len(due)

    def _step_failed(self, program_id: str, error: Exception) -> None:
        """Hold back a program whose step raised until a backoff delay passes."""
        item = self.queue.get(program_id)
        if item is None:
            return
        attempt = self._attempts.get(program_id, 0)
        self._attempts[program_id] = attempt + 1

        now = self._clock()
        item.state.executing = False
        item.state.next_execution_time = self.retry_config.calculate_next_retry(attempt, now)
        logger.error(
            "Step failed for program %s (attempt %d), retrying in %d ms: %s",
            program_id,
            attempt + 1,
            item.state.next_execution_time - now,
            error,
            exc_info=error,
        )

    async def _check(self, item: ActionQueueItem, now: int) -> None:
        state = item.state
        program_id = item.program.program_id
        state.executing = True

        try:
            result = await self.context.check_action_effect(state.effect)
        except Exception as e:
            await self._retry_later(item, now, "check", e)
            return

        state.executing = False
        if state.is_done:
            return  # cancelled while checking

        self._attempts.pop(program_id, None)
        state.last_execution_time = now
        state.next_execution_time = now + result.delay
        if result.updated_effect is not None:
            state.effect = result.updated_effect
        state.effective = result.is_effective or state.is_done

        if state.effective:
            self._release_pending_txs(program_id)
            logger.debug("Program %s effect is effective", program_id)
        if state.is_done:
            self._log_done(program_id, state.effect)
        await self._commit(item)

    async def _execute(self, item: ActionQueueItem, now: int) -> None:
        state = item.state
        program = item.program
        state.executing = True

        try:
            action = await self.context.evaluate_action(program, state)
            preview = await action.dryrun(self.pending_tx_snapshot())
        except TERMINAL_ERRORS as e:
            logger.error("Program %s failed validation: %s", program.program_id, e)
            await self._finish(item, DoneEffect.from_exception(e))
            return
        except Exception as e:
            await self._retry_later(item, now, "evaluate", e)
            return

        if state.is_done:
            state.executing = False
            return  # cancelled while evaluating

        if preview is None:
            # Another program has unconfirmed spends on the same wallet
            state.executing = False
            state.next_execution_time = now + self.context.settings.deferral_delay_ms
            logger.info(
                "Program %s deferred for %d ms by pending transactions",
                program.program_id,
                self.context.settings.deferral_delay_ms,
            )
            await self._commit(item)
            return

        try:
            output = await action.execute()
        except Exception as e:
            if state.is_done:
                state.executing = False
                return
            logger.error("Program %s execution failed: %s", program.program_id, e)
            await self._finish(item, DoneEffect.from_exception(e))
            return

        if state.is_done:
            state.executing = False
            logger.info("Discarding result of cancelled program %s", program.program_id)
            return

        self._attempts.pop(program.program_id, None)
        self._track_broadcast_txs(program.program_id, output.broadcast_txs)

        finished_at = self._clock()
        state.effect = output.effect
        state.effective = isinstance(output.effect, DoneEffect)
        state.executing = False
        state.last_execution_time = finished_at
        state.next_execution_time = finished_at

        if state.is_done:
            self._release_pending_txs(program.program_id)
            self._log_done(program.program_id, state.effect)
        else:
            logger.info(
                "Program %s executed, watching %s effect", program.program_id, output.effect.type
            )
        await self._commit(item)

    async def _finish(self, item: ActionQueueItem, effect: DoneEffect) -> None:
        """Move a program to a terminal done effect."""
        state = item.state
        finished_at = self._clock()
        state.effect = effect
        state.effective = True
        state.executing = False
        state.last_execution_time = finished_at
        state.next_execution_time = finished_at
        self._release_pending_txs(item.program.program_id)
        self._attempts.pop(item.program.program_id, None)
        await self._commit(item)

    async def _retry_later(
        self, item: ActionQueueItem, now: int, phase: str, error: Exception
    ) -> None:
        """Schedule another attempt after a transient failure."""
        program_id = item.program.program_id
        attempt = self._attempts.get(program_id, 0)
        self._attempts[program_id] = attempt + 1

        state = item.state
        state.executing = False
        if state.is_done:
            return
        state.next_execution_time = self.retry_config.calculate_next_retry(attempt, now)
        logger.warning(
            "Transient %s failure for program %s (attempt %d), retrying in %d ms: %s",
            phase,
            program_id,
            attempt + 1,
            state.next_execution_time - now,
            error,
        )
        await self._commit(item)

    def _log_done(self, program_id: str, effect: ActionEffect) -> None:
        if isinstance(effect, DoneEffect) and effect.error is not None:
            logger.error("Program %s failed: %s", program_id, effect.error)
        else:
            logger.info("Program %s done", program_id)

    # -------------------------------------------------------------------------
    # Pending transactions
    # -------------------------------------------------------------------------

    def _track_broadcast_txs(self, program_id: str, broadcast_txs: Iterable[BroadcastTx]) -> None:
        wallets = self._pending_txs.setdefault(program_id, {})
        for broadcast in broadcast_txs:
            wallets.setdefault(broadcast.wallet_id, []).append(broadcast.tx)
        if not wallets:
            del self._pending_txs[program_id]

    def _release_pending_txs(self, program_id: str) -> None:
        self._pending_txs.pop(program_id, None)

    # -------------------------------------------------------------------------
    # Persistence and notification
    # -------------------------------------------------------------------------

    def _get(self, program_id: str) -> ActionQueueItem:
        item = self.queue.get(program_id)
        if item is None:
            raise KeyError(program_id)
        return item

    async def _commit(self, item: ActionQueueItem) -> None:
        if self.store is not None:
            await self.store.save_item(item)
        if self.on_update is not None:
            await self.on_update(item)

    async def sync_store(self) -> None:
        """
        Pick up changes other processes wrote to the store.

        Signaled push events go into the context registry, programs added
        elsewhere join the queue, and cancellations are applied.
        """
        if self.store is None:
            return

        new = self.context.events.update(await self.store.list_signaled_events())
        if new:
            logger.info("Received %d push event(s)", new)

        for stored in await self.store.list_items():
            program_id = stored.program.program_id
            local = self.queue.get(program_id)
            if local is None:
                stored.state.executing = False
                self.queue[program_id] = stored
                logger.info("Picked up program %s from store", program_id)
            elif (
                isinstance(stored.state.effect, DoneEffect)
                and stored.state.effect.cancelled
                and not local.state.is_done
            ):
                await self.cancel_program(program_id)

    # -------------------------------------------------------------------------
    # Daemon loop
    # -------------------------------------------------------------------------

    async def run(self, handle_signals: bool = True) -> None:
        """
        Run the scheduler until stop() or a shutdown signal.

        Each cycle syncs the store, steps due programs, then sleeps
        until the next program is due (at most max_idle_seconds).
        """
        if handle_signals:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info("Action queue starting with %d program(s)", len(self.queue))

        while not self._shutdown.is_set():
            try:
                await self.sync_store()
            except Exception as e:
                # Log but don't crash; the next cycle syncs again
                logger.error("Store sync failed: %s", e, exc_info=e)

            # Per-program failures are contained by tick()
            await self.tick()

            # Wait for the next due program or shutdown signal
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._idle_seconds())
            except asyncio.TimeoutError:
                pass

        logger.info("Action queue stopped")

    def stop(self) -> None:
        """Ask the run loop to exit after the current cycle."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown.set()

    def _idle_seconds(self) -> float:
        max_idle = self.context.settings.max_idle_seconds
        waiting = [
            item.state.next_execution_time
            for item in self.queue.values()
            if not item.state.is_done and not item.state.executing
        ]
        if not waiting:
            return max_idle
        wait_ms = min(waiting) - self._clock()
        return min(max_idle, max(0.0, wait_ms / 1000))
