"""
Plain data types exchanged with the wallet/account capability layer.

These types describe transactions and spend requests as the action queue
sees them. They carry no behavior: wallets, signing and broadcasting live
behind the protocols in account.py and providers.py.

All native amounts are base-10 integer strings in the currency's smallest
unit (satoshis, wei, ...). Token IDs are None for a wallet's parent currency.

All types use @dataclass for simplicity. Pydantic models are reserved for
the persisted action program model in actionqueue_core.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

# Type aliases for common patterns
WalletId = str
"""Unique identifier for a currency wallet inside an account."""

TokenId = str | None
"""Token identifier within a wallet, None for the parent currency."""


@dataclass
class WalletTx:
    """
    A transaction as produced by a currency wallet.

    Unsigned, signed and broadcast transactions share this shape; the
    signed_tx payload and tx_id fill in as the transaction moves through
    make_spend -> sign_tx -> broadcast_tx.

    Attributes:
        tx_id: Transaction hash (may be empty before signing on some chains).
        wallet_id: The wallet that owns the transaction.
        currency_code: Currency code of the spent asset (e.g. "BTC").
        native_amount: Signed amount moved by the transaction.
        network_fee: Fee paid in the parent currency's native units.
        signed_tx: Raw signed payload, empty until signed.
        other_params: Plugin-specific extras (memo, nonce, ...).
    """

    tx_id: str
    wallet_id: WalletId
    currency_code: str
    native_amount: str
    network_fee: str = "0"
    signed_tx: bytes = b""
    other_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class NetworkFee:
    """Network fee paid for a broadcast transaction."""

    currency_code: str
    native_amount: str


@dataclass
class BroadcastTx:
    """
    A transaction that has been broadcast to the network.

    Attributes:
        wallet_id: Wallet the transaction was broadcast from.
        network_fee: Fee paid for the broadcast.
        tx: The broadcast transaction.
    """

    wallet_id: WalletId
    network_fee: NetworkFee
    tx: WalletTx


@dataclass
class SpendTarget:
    """A single output of a spend."""

    public_address: str
    native_amount: str


@dataclass
class SpendInfo:
    """
    Request to build a spend transaction.

    Attributes:
        token_id: Token to spend, None for the parent currency.
        spend_targets: Outputs of the transaction.
        pending_txs: Transactions not yet confirmed that the wallet should
            take into account when selecting inputs / nonces.
    """

    token_id: TokenId
    spend_targets: list[SpendTarget]
    pending_txs: list[WalletTx] = field(default_factory=list)


@dataclass
class BorrowRequest:
    """Request passed to a borrow engine method."""

    token_id: TokenId
    native_amount: str
    from_token_id: TokenId = None


@dataclass
class SwapRequest:
    """
    Request for a swap quote.

    Attributes:
        from_wallet_id: Source wallet.
        from_token_id: Source token, None for the parent currency.
        to_wallet_id: Destination wallet.
        to_token_id: Destination token, None for the parent currency.
        native_amount: Amount, interpreted on the side given by quote_for.
        quote_for: "from" quotes an exact input, "to" an exact output.
    """

    from_wallet_id: WalletId
    from_token_id: TokenId
    to_wallet_id: WalletId
    to_token_id: TokenId
    native_amount: str
    quote_for: Literal["from", "to"] = "from"
