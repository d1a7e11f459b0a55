"""
Leaf op evaluation: the ops that touch wallets and providers.

Each evaluator validates its op against the account, then returns an
ExecutableAction whose dryrun() previews the resulting effect and whose
execute() performs the real side effects. Validation failures raise
ActionValidationError subclasses before anything is sent anywhere.

A dry-run returns None when the op spends from a wallet that still has
unconfirmed transactions; the scheduler waits and asks again later.

Evaluators are registered in LEAF_EVALUATORS keyed by op type.
"""

import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from actionqueue_core.actions.effects import (
    ActionEffect,
    AddressBalanceEffect,
    DoneEffect,
    TxConfsEffect,
)
from actionqueue_core.actions.exceptions import (
    BorrowPluginNotFoundError,
    CurrencyMismatchError,
    ProviderUnavailableError,
    WalletMismatchError,
    WalletNotFoundError,
)
from actionqueue_core.actions.ops import (
    BroadcastTxActionOp,
    LoanActionOp,
    LoanRepayActionOp,
    SwapActionOp,
    WyreBuyActionOp,
    WyreSellActionOp,
)
from actionqueue_core.actions.types import (
    ActionProgram,
    ExecutableAction,
    ExecutionOutput,
    PendingTxMap,
)
from actionqueue_protocols import (
    BorrowRequest,
    BroadcastTx,
    NetworkFee,
    SpendInfo,
    SpendTarget,
    SwapRequest,
    WalletTx,
)

if TYPE_CHECKING:
    from actionqueue_core.context import ExecutionContext

logger = logging.getLogger(__name__)

LeafEvaluator = Callable[["ExecutionContext", ActionProgram], Awaitable[ExecutableAction]]


async def evaluate_leaf_op(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    """
    Compile a leaf op.

    Raises:
        ValueError: If the op type has no registered evaluator
        ActionValidationError: If the op does not fit the account
    """
    op = program.action_op
    evaluator = LEAF_EVALUATORS.get(op.type)
    if evaluator is None:
        raise ValueError(f"No evaluator for op type '{op.type}'")
    return await evaluator(context, program)


def has_pending_txs(pending_tx_map: PendingTxMap, wallet_id: str) -> bool:
    """Return True if the wallet has unconfirmed transactions from other programs."""
    return bool(pending_tx_map.get(wallet_id))


def _require_wallet(context: "ExecutionContext", wallet_id: str) -> None:
    if not context.account.has_wallet(wallet_id):
        raise WalletNotFoundError(wallet_id)


def _tx_confs_effect(context: "ExecutionContext", tx_id: str, wallet_id: str) -> TxConfsEffect:
    return TxConfsEffect(
        tx_id=tx_id,
        wallet_id=wallet_id,
        confirmations=context.settings.tx_confirmations,
    )


async def _send(context: "ExecutionContext", wallet_id: str, tx: WalletTx) -> BroadcastTx:
    """Sign, broadcast and save a transaction built by make_spend."""
    account = context.account
    signed = await account.sign_tx(wallet_id, tx)
    broadcast = await account.broadcast_tx(wallet_id, signed)
    await account.save_tx(wallet_id, broadcast)
    logger.info("Broadcast %s from wallet %s", broadcast.tx_id, wallet_id)
    return BroadcastTx(
        wallet_id=wallet_id,
        network_fee=NetworkFee(currency_code=broadcast.currency_code, native_amount=broadcast.network_fee),
        tx=broadcast,
    )


async def _balance_effect(
    context: "ExecutionContext", wallet_id: str, token_id: str | None
) -> AddressBalanceEffect:
    """Effect that waits for the wallet's receive address to gain funds."""
    address = await context.account.get_receive_address(wallet_id, token_id)
    balance = await context.account.get_address_balance(wallet_id, address, token_id)
    return AddressBalanceEffect(
        address=address,
        above_amount=balance,
        wallet_id=wallet_id,
        token_id=token_id,
    )


async def _broadcast_tx(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    op: BroadcastTxActionOp = program.action_op
    wallet_id = context.account.find_wallet_id(op.plugin_id)
    if wallet_id is None:
        raise WalletNotFoundError(op.plugin_id)

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        if has_pending_txs(pending_tx_map, wallet_id):
            return None
        # The tx id is only known once the network accepts the transaction
        return ExecutionOutput(effect=_tx_confs_effect(context, "", wallet_id))

    async def execute() -> ExecutionOutput:
        broadcast = await context.account.broadcast_raw_tx(op.plugin_id, op.raw_tx_bytes)
        logger.info("Broadcast raw transaction %s for %s", broadcast.tx.tx_id, op.plugin_id)
        return ExecutionOutput(
            effect=_tx_confs_effect(context, broadcast.tx.tx_id, broadcast.wallet_id),
            broadcast_txs=[broadcast],
        )

    return ExecutableAction(dryrun=dryrun, execute=execute)


async def _wyre_buy(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    op: WyreBuyActionOp = program.action_op
    _require_wallet(context, op.wallet_id)
    wyre = context.wyre
    if wyre is None:
        raise ProviderUnavailableError("wyre")

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput:
        return ExecutionOutput(effect=await _balance_effect(context, op.wallet_id, op.token_id))

    async def execute() -> ExecutionOutput:
        effect = await _balance_effect(context, op.wallet_id, op.token_id)
        order_id = await wyre.request_buy(op.wallet_id, op.token_id, op.native_amount, effect.address)
        logger.info("Placed Wyre buy order %s for wallet %s", order_id, op.wallet_id)
        return ExecutionOutput(effect=effect)

    return ExecutableAction(dryrun=dryrun, execute=execute)


async def _wyre_sell(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    op: WyreSellActionOp = program.action_op
    _require_wallet(context, op.wallet_id)
    wyre = context.wyre
    if wyre is None:
        raise ProviderUnavailableError("wyre")

    async def make_spend(pending_txs: list[WalletTx]) -> WalletTx:
        address = await wyre.get_sell_address(op.wyre_account_id, op.wallet_id, op.token_id)
        spend_info = SpendInfo(
            token_id=op.token_id,
            spend_targets=[SpendTarget(public_address=address, native_amount=op.native_amount)],
            pending_txs=pending_txs,
        )
        return await context.account.make_spend(op.wallet_id, spend_info)

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        if has_pending_txs(pending_tx_map, op.wallet_id):
            return None
        tx = await make_spend([])
        return ExecutionOutput(effect=_tx_confs_effect(context, tx.tx_id, op.wallet_id))

    async def execute() -> ExecutionOutput:
        broadcast = await _send(context, op.wallet_id, await make_spend([]))
        return ExecutionOutput(
            effect=_tx_confs_effect(context, broadcast.tx.tx_id, op.wallet_id),
            broadcast_txs=[broadcast],
        )

    return ExecutableAction(dryrun=dryrun, execute=execute)


def _last_tx_effect(context: "ExecutionContext", txs: list[BroadcastTx]) -> ActionEffect:
    """Watch the final transaction of a multi-transaction approval."""
    if not txs:
        return DoneEffect()
    last = txs[-1]
    return _tx_confs_effect(context, last.tx.tx_id, last.wallet_id)


_LOAN_METHODS = {
    "loan-borrow": "borrow",
    "loan-deposit": "deposit",
    "loan-repay": "repay",
    "loan-withdraw": "withdraw",
}


async def _loan(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    op: LoanActionOp = program.action_op
    _require_wallet(context, op.wallet_id)
    plugin = context.borrow_plugins.get(op.borrow_plugin_id)
    if plugin is None:
        raise BorrowPluginNotFoundError(op.borrow_plugin_id, sorted(context.borrow_plugins))

    engine = await plugin.make_borrow_engine(op.wallet_id)
    if engine.currency_wallet_id != op.wallet_id:
        raise WalletMismatchError(op.wallet_id, engine.currency_wallet_id)

    request = BorrowRequest(
        token_id=op.token_id,
        native_amount=op.native_amount,
        from_token_id=op.from_token_id if isinstance(op, LoanRepayActionOp) else None,
    )
    make_action = getattr(engine, _LOAN_METHODS[op.type])

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        if has_pending_txs(pending_tx_map, op.wallet_id):
            return None
        approvable = await make_action(request)
        txs = await approvable.dryrun([])
        return ExecutionOutput(effect=_last_tx_effect(context, txs))

    async def execute() -> ExecutionOutput:
        approvable = await make_action(request)
        txs = await approvable.approve()
        logger.info(
            "Approved %s on %s: %d transaction(s)", op.type, op.borrow_plugin_id, len(txs)
        )
        return ExecutionOutput(effect=_last_tx_effect(context, txs), broadcast_txs=list(txs))

    return ExecutableAction(dryrun=dryrun, execute=execute)


async def _swap(context: "ExecutionContext", program: ActionProgram) -> ExecutableAction:
    op: SwapActionOp = program.action_op
    _require_wallet(context, op.from_wallet_id)
    _require_wallet(context, op.to_wallet_id)
    if op.from_wallet_id == op.to_wallet_id and op.from_token_id == op.to_token_id:
        raise CurrencyMismatchError("cannot swap a currency into itself")
    swap = context.swap
    if swap is None:
        raise ProviderUnavailableError("swap")

    request = SwapRequest(
        from_wallet_id=op.from_wallet_id,
        from_token_id=op.from_token_id,
        to_wallet_id=op.to_wallet_id,
        to_token_id=op.to_token_id,
        native_amount=op.native_amount,
        quote_for=op.amount_for,
    )

    async def dryrun(pending_tx_map: PendingTxMap) -> ExecutionOutput | None:
        if has_pending_txs(pending_tx_map, op.from_wallet_id):
            return None
        quote = await swap.fetch_swap_quote(request)
        try:
            effect = await _balance_effect(context, op.to_wallet_id, op.to_token_id)
        finally:
            await quote.close()
        return ExecutionOutput(effect=effect)

    async def execute() -> ExecutionOutput:
        quote = await swap.fetch_swap_quote(request)
        try:
            effect = await _balance_effect(context, op.to_wallet_id, op.to_token_id)
            broadcast = await quote.approve()
        except Exception:
            await quote.close()
            raise
        logger.info(
            "Swapped %s from wallet %s into wallet %s (tx %s)",
            quote.from_native_amount,
            op.from_wallet_id,
            op.to_wallet_id,
            broadcast.tx.tx_id,
        )
        return ExecutionOutput(effect=effect, broadcast_txs=[broadcast])

    return ExecutableAction(dryrun=dryrun, execute=execute)


LEAF_EVALUATORS: dict[str, LeafEvaluator] = {
    "broadcast-tx": _broadcast_tx,
    "wyre-buy": _wyre_buy,
    "wyre-sell": _wyre_sell,
    "loan-borrow": _loan,
    "loan-deposit": _loan,
    "loan-repay": _loan,
    "loan-withdraw": _loan,
    "swap": _swap,
}
