"""
Capability protocols for the action queue.

This package provides the Protocol definitions that wallet SDK bindings and
provider plugins implement so the action queue can drive them. It has zero
dependencies on other actionqueue-* packages.

Key protocols:
- AccountProtocol: Wallet reads and the spend pipeline
- RateProviderProtocol: Exchange rate lookups
- BorrowPluginProtocol / BorrowEngineProtocol / ApprovableActionProtocol: Loans
- SwapProviderProtocol / SwapQuoteProtocol: Swaps
- WyreProtocol: Fiat on/off ramp

Key types:
- WalletTx, BroadcastTx, NetworkFee: Transactions
- SpendInfo, SpendTarget, BorrowRequest, SwapRequest: Requests
- InsufficientFundsError: Resource error raised by wallets
"""

from actionqueue_protocols.account import AccountProtocol, RateProviderProtocol
from actionqueue_protocols.errors import InsufficientFundsError
from actionqueue_protocols.providers import (
    ApprovableActionProtocol,
    BorrowEngineProtocol,
    BorrowPluginProtocol,
    SwapProviderProtocol,
    SwapQuoteProtocol,
    WyreProtocol,
)
from actionqueue_protocols.types import (
    BorrowRequest,
    BroadcastTx,
    NetworkFee,
    SpendInfo,
    SpendTarget,
    SwapRequest,
    TokenId,
    WalletId,
    WalletTx,
)

__all__ = [
    # Protocols
    "AccountProtocol",
    "RateProviderProtocol",
    "ApprovableActionProtocol",
    "BorrowEngineProtocol",
    "BorrowPluginProtocol",
    "SwapProviderProtocol",
    "SwapQuoteProtocol",
    "WyreProtocol",
    # Data types
    "BorrowRequest",
    "BroadcastTx",
    "NetworkFee",
    "SpendInfo",
    "SpendTarget",
    "SwapRequest",
    "TokenId",
    "WalletId",
    "WalletTx",
    # Errors
    "InsufficientFundsError",
]
