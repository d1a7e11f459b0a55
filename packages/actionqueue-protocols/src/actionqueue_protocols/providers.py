"""
Provider protocols for lending, swapping and fiat ramps.

Each protocol mirrors what a provider plugin exposes to the wallet app:

- BorrowPluginProtocol / BorrowEngineProtocol: collateralized loans
- SwapProviderProtocol / SwapQuoteProtocol: cross-currency swaps
- WyreProtocol: fiat on/off ramp

Loan operations return an ApprovableActionProtocol: the transactions are
prepared up front, can be simulated with dryrun(), and only hit the network
when approve() is called.
"""

from typing import Protocol, runtime_checkable

from actionqueue_protocols.types import (
    BorrowRequest,
    BroadcastTx,
    NetworkFee,
    SwapRequest,
    TokenId,
    WalletId,
    WalletTx,
)


@runtime_checkable
class ApprovableActionProtocol(Protocol):
    """A prepared set of transactions awaiting approval."""

    network_fee: NetworkFee
    unsigned_txs: list[WalletTx]

    async def dryrun(self, pending_txs: list[WalletTx]) -> list[BroadcastTx]:
        """Sign the transactions against pending state without broadcasting."""
        ...

    async def approve(self) -> list[BroadcastTx]:
        """Sign and broadcast the transactions."""
        ...


@runtime_checkable
class BorrowEngineProtocol(Protocol):
    """Loan position of one wallet with one lending provider."""

    currency_wallet_id: WalletId

    async def deposit(self, request: BorrowRequest) -> ApprovableActionProtocol:
        """Deposit collateral."""
        ...

    async def withdraw(self, request: BorrowRequest) -> ApprovableActionProtocol:
        """Withdraw collateral."""
        ...

    async def borrow(self, request: BorrowRequest) -> ApprovableActionProtocol:
        """Borrow against the deposited collateral."""
        ...

    async def repay(self, request: BorrowRequest) -> ApprovableActionProtocol:
        """Repay a debt, optionally from another token (from_token_id)."""
        ...


@runtime_checkable
class BorrowPluginProtocol(Protocol):
    """Lending provider plugin."""

    plugin_id: str

    async def make_borrow_engine(self, wallet_id: WalletId) -> BorrowEngineProtocol:
        """Open the loan position of a wallet."""
        ...


@runtime_checkable
class SwapQuoteProtocol(Protocol):
    """A swap quote that can be approved or discarded."""

    from_native_amount: str
    to_native_amount: str
    network_fee: NetworkFee

    async def approve(self) -> BroadcastTx:
        """Execute the swap, returning the source-side transaction."""
        ...

    async def close(self) -> None:
        """Release the quote without executing it."""
        ...


@runtime_checkable
class SwapProviderProtocol(Protocol):
    """Swap aggregator."""

    async def fetch_swap_quote(self, request: SwapRequest) -> SwapQuoteProtocol:
        """Get the best quote for a swap request."""
        ...


@runtime_checkable
class WyreProtocol(Protocol):
    """Fiat on/off ramp."""

    async def get_sell_address(
        self, wyre_account_id: str, wallet_id: WalletId, token_id: TokenId
    ) -> str:
        """Get the deposit address that converts received crypto to fiat."""
        ...

    async def request_buy(
        self,
        wallet_id: WalletId,
        token_id: TokenId,
        native_amount: str,
        receive_address: str,
    ) -> str:
        """Place a purchase delivered to receive_address, returning an order id."""
        ...
