"""
Execution context shared by the evaluator, checker and scheduler.

The context bundles the capabilities one account offers (wallets, rates,
lending, swaps, fiat ramp), the registry of pushed events, and settings.
Everything mutable the engine needs lives here rather than in module
globals, so several accounts can run programs side by side.

Example:
    context = ExecutionContext(
        account=account,
        client_id="device-1",
        rates=HttpRateClient(http=http),
        borrow_plugins={"aave": aave_plugin},
    )
    action = await context.evaluate_action(program, state)
    result = await context.check_action_effect(state.effect)
"""

from dataclasses import dataclass, field

from actionqueue_core.actions.checker import check_action_effect
from actionqueue_core.actions.effects import ActionEffect
from actionqueue_core.actions.evaluator import evaluate_action
from actionqueue_core.actions.types import (
    ActionProgram,
    ActionProgramState,
    EffectCheckResult,
    ExecutableAction,
)
from actionqueue_core.config import Settings
from actionqueue_core.events import PushEventRegistry
from actionqueue_protocols import (
    AccountProtocol,
    BorrowPluginProtocol,
    RateProviderProtocol,
    SwapProviderProtocol,
    WyreProtocol,
)


@dataclass
class ExecutionContext:
    """
    Capabilities and state for running action programs of one account.

    Attributes:
        account: Wallet capability provider
        client_id: Client that owns the programs run with this context
        rates: Exchange rate provider for price-level effects
        borrow_plugins: Lending providers keyed by plugin id
        swap: Swap provider
        wyre: Fiat ramp provider
        events: Signaled push events
        settings: Polling and confirmation settings
    """

    account: AccountProtocol
    client_id: str
    rates: RateProviderProtocol | None = None
    borrow_plugins: dict[str, BorrowPluginProtocol] = field(default_factory=dict)
    swap: SwapProviderProtocol | None = None
    wyre: WyreProtocol | None = None
    events: PushEventRegistry = field(default_factory=PushEventRegistry)
    settings: Settings = field(default_factory=Settings)

    async def evaluate_action(
        self, program: ActionProgram, state: ActionProgramState
    ) -> ExecutableAction:
        """Compile a program's next step into an executable action."""
        return await evaluate_action(self, program, state)

    async def check_action_effect(self, effect: ActionEffect) -> EffectCheckResult:
        """Check whether an effect's condition holds."""
        return await check_action_effect(self, effect)
