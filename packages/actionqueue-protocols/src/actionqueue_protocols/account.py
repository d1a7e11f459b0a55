"""
Account protocol definition.

The AccountProtocol is the opaque capability the action queue uses to read
wallet state and to move funds. The queue never signs or broadcasts on its
own: every side effect goes through an implementation of this protocol
(a wallet SDK binding in production, a fake in tests).

The RateProviderProtocol supplies exchange rates for price-level effects.
"""

from typing import Protocol, runtime_checkable

from actionqueue_protocols.types import (
    BroadcastTx,
    SpendInfo,
    TokenId,
    WalletId,
    WalletTx,
)


@runtime_checkable
class AccountProtocol(Protocol):
    """
    Protocol for the logged-in account and its currency wallets.

    Observations:
        - has_wallet: Whether the account owns a wallet
        - find_wallet_id: Locate a wallet by currency plugin
        - get_address_balance: Balance held by one address of a wallet
        - get_receive_address: Fresh receive address for a wallet/token
        - get_tx_confirmations: Confirmation count of a transaction

    Actions:
        - make_spend / sign_tx / broadcast_tx / save_tx: The spend pipeline
        - broadcast_raw_tx: Broadcast an externally built transaction

    Errors:
        make_spend raises InsufficientFundsError when the wallet cannot
        fund the request.
    """

    def has_wallet(self, wallet_id: WalletId) -> bool:
        """Return True if the account owns the wallet."""
        ...

    def find_wallet_id(self, plugin_id: str) -> WalletId | None:
        """Return a wallet for the currency plugin, or None if there is none."""
        ...

    async def get_address_balance(
        self, wallet_id: WalletId, address: str, token_id: TokenId
    ) -> str:
        """
        Get the balance of an address.

        Returns:
            Native amount as an integer string
        """
        ...

    async def get_receive_address(self, wallet_id: WalletId, token_id: TokenId) -> str:
        """Get a public receive address for the wallet."""
        ...

    async def get_tx_confirmations(self, wallet_id: WalletId, tx_id: str) -> int:
        """Get the number of confirmations of a transaction (0 if unconfirmed)."""
        ...

    async def make_spend(self, wallet_id: WalletId, spend_info: SpendInfo) -> WalletTx:
        """Build an unsigned transaction without touching the network."""
        ...

    async def sign_tx(self, wallet_id: WalletId, tx: WalletTx) -> WalletTx:
        """Sign a transaction."""
        ...

    async def broadcast_tx(self, wallet_id: WalletId, tx: WalletTx) -> WalletTx:
        """Broadcast a signed transaction."""
        ...

    async def save_tx(self, wallet_id: WalletId, tx: WalletTx) -> None:
        """Persist a broadcast transaction in the wallet's history."""
        ...

    async def broadcast_raw_tx(self, plugin_id: str, raw_tx: bytes) -> BroadcastTx:
        """Broadcast a raw, already-signed transaction for a currency plugin."""
        ...


@runtime_checkable
class RateProviderProtocol(Protocol):
    """Protocol for exchange rate lookups."""

    async def get_exchange_rate(self, currency_pair: str) -> float:
        """
        Get the current rate for a currency pair.

        Args:
            currency_pair: Pair in "FROM_TO" form (e.g. "BTC_iso:USD")

        Returns:
            Units of the quote currency per unit of the base currency
        """
        ...
