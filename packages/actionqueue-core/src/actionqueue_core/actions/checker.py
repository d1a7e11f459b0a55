"""
Effect checker: observes whether an effect's condition holds.

check_action_effect() dispatches on the effect type through
EFFECT_CHECKERS and returns an EffectCheckResult with:
- is_effective: whether the condition currently holds
- delay: milliseconds to wait before the next check
- updated_effect: a replacement effect, when checking advanced it
  (push-event chaining, or a composite child that changed)

Checks never have side effects. Lookup failures (network, wallet) are not
caught here; the scheduler treats them as transient and retries.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from actionqueue_core.actions.effects import (
    ActionEffect,
    AddressBalanceEffect,
    DoneEffect,
    ParEffect,
    PriceLevelEffect,
    PushEventEffect,
    SeqEffect,
    TxConfsEffect,
    first_failure,
    is_failed,
)
from actionqueue_core.actions.exceptions import ProviderUnavailableError
from actionqueue_core.actions.types import EffectCheckResult

if TYPE_CHECKING:
    from actionqueue_core.context import ExecutionContext

logger = logging.getLogger(__name__)

EffectChecker = Callable[["ExecutionContext", Any], Awaitable[EffectCheckResult]]


async def check_action_effect(
    context: "ExecutionContext", effect: ActionEffect
) -> EffectCheckResult:
    """
    Check whether an effect's condition holds.

    Args:
        context: Capabilities used to observe account state
        effect: The effect to check

    Returns:
        EffectCheckResult; effective leaves always report delay 0

    Raises:
        ValueError: If the effect type has no registered checker
    """
    checker = EFFECT_CHECKERS.get(effect.type)
    if checker is None:
        raise ValueError(f"No checker for effect type '{effect.type}'")
    return await checker(context, effect)


def is_within_bounds(value: int | float, above: int | float | None, below: int | float | None) -> bool:
    """Return True when value is strictly between the bounds that are set."""
    if above is not None and not value > above:
        return False
    if below is not None and not value < below:
        return False
    return True


def _poll(is_effective: bool, delay: int) -> EffectCheckResult:
    return EffectCheckResult(delay=0 if is_effective else delay, is_effective=is_effective)


async def _check_address_balance(
    context: "ExecutionContext", effect: AddressBalanceEffect
) -> EffectCheckResult:
    balance = await context.account.get_address_balance(
        effect.wallet_id, effect.address, effect.token_id
    )
    above = int(effect.above_amount) if effect.above_amount is not None else None
    below = int(effect.below_amount) if effect.below_amount is not None else None
    effective = is_within_bounds(int(balance), above, below)
    logger.debug("Balance of %s is %s (effective=%s)", effect.address, balance, effective)
    return _poll(effective, context.settings.balance_poll_ms)


async def _check_price_level(
    context: "ExecutionContext", effect: PriceLevelEffect
) -> EffectCheckResult:
    if context.rates is None:
        raise ProviderUnavailableError("rates")
    rate = await context.rates.get_exchange_rate(effect.currency_pair)
    effective = is_within_bounds(rate, effect.above_rate, effect.below_rate)
    logger.debug("Rate of %s is %s (effective=%s)", effect.currency_pair, rate, effective)
    return _poll(effective, context.settings.price_poll_ms)


async def _check_tx_confs(
    context: "ExecutionContext", effect: TxConfsEffect
) -> EffectCheckResult:
    confirmations = await context.account.get_tx_confirmations(effect.wallet_id, effect.tx_id)
    if confirmations >= effect.confirmations:
        return _poll(True, 0)
    settings = context.settings
    if effect.confirmations - confirmations <= 1:
        return _poll(False, settings.tx_confs_near_poll_ms)
    return _poll(False, settings.tx_confs_poll_ms)


async def _check_push_event(
    context: "ExecutionContext", effect: PushEventEffect
) -> EffectCheckResult:
    if not context.events.is_signaled(effect.event_id):
        return _poll(False, context.settings.push_event_poll_ms)
    if effect.effect is None:
        return _poll(True, 0)

    # The event fired; from now on only the nested effect matters
    nested = await check_action_effect(context, effect.effect)
    return EffectCheckResult(
        delay=nested.delay,
        is_effective=nested.is_effective,
        updated_effect=nested.updated_effect or effect.effect,
    )


async def _check_seq(context: "ExecutionContext", effect: SeqEffect) -> EffectCheckResult:
    active = effect.active_effect
    if active is None:
        # Active child has not run yet
        return _poll(True, 0)
    if is_failed(active):
        return EffectCheckResult(delay=0, is_effective=True, updated_effect=active)

    result = await check_action_effect(context, active)
    updated = result.updated_effect
    if updated is None:
        return result
    if is_failed(updated):
        return EffectCheckResult(delay=0, is_effective=True, updated_effect=updated)

    child_effects = list(effect.child_effects)
    child_effects[effect.op_index] = updated
    return EffectCheckResult(
        delay=result.delay,
        is_effective=result.is_effective,
        updated_effect=SeqEffect(op_index=effect.op_index, child_effects=child_effects),
    )


async def _check_par(context: "ExecutionContext", effect: ParEffect) -> EffectCheckResult:
    failure = first_failure(effect.child_effects)
    if failure is not None:
        return EffectCheckResult(delay=0, is_effective=True, updated_effect=failure)

    active = [
        index
        for index, child in enumerate(effect.child_effects)
        if not isinstance(child, DoneEffect)
    ]
    if not active:
        return _poll(True, 0)

    results = await asyncio.gather(
        *(check_action_effect(context, effect.child_effects[index]) for index in active)
    )

    child_effects = list(effect.child_effects)
    changed = False
    for index, result in zip(active, results):
        if result.updated_effect is not None:
            child_effects[index] = result.updated_effect
            changed = True

    failure = first_failure(child_effects)
    if failure is not None:
        return EffectCheckResult(delay=0, is_effective=True, updated_effect=failure)

    waiting = [result.delay for result in results if not result.is_effective]
    return EffectCheckResult(
        delay=min(waiting) if waiting else 0,
        is_effective=not waiting,
        updated_effect=ParEffect(child_effects=child_effects) if changed else None,
    )


async def _check_done(context: "ExecutionContext", effect: DoneEffect) -> EffectCheckResult:
    return _poll(True, 0)


EFFECT_CHECKERS: dict[str, EffectChecker] = {
    "address-balance": _check_address_balance,
    "price-level": _check_price_level,
    "tx-confs": _check_tx_confs,
    "push-event": _check_push_event,
    "seq": _check_seq,
    "par": _check_par,
    "done": _check_done,
}
