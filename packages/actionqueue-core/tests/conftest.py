"""
Shared fakes for action queue tests.

The fakes implement the capability protocols with in-memory state so
tests can drive balances, confirmations and rates directly.
"""

from dataclasses import replace

import pytest

from actionqueue_core.config import Settings
from actionqueue_core.context import ExecutionContext
from actionqueue_protocols import (
    BorrowRequest,
    BroadcastTx,
    InsufficientFundsError,
    NetworkFee,
    SpendInfo,
    SwapRequest,
    WalletTx,
)


class FakeAccount:
    """In-memory account implementing AccountProtocol."""

    def __init__(self, wallets: dict[str, str] | None = None):
        # wallet id -> currency plugin id
        self.wallets = wallets or {"btc-wallet": "bitcoin", "eth-wallet": "ethereum"}
        self.balances: dict[str, str] = {}
        self.confirmations: dict[str, int] = {}
        self.spends: list[tuple[str, SpendInfo]] = []
        self.broadcasts: list[WalletTx] = []
        self.saved: list[WalletTx] = []
        self.raw_broadcasts: list[tuple[str, bytes]] = []
        self.fail_spend: Exception | None = None
        self.fail_balance: Exception | None = None
        self._next_tx = 0

    def has_wallet(self, wallet_id):
        return wallet_id in self.wallets

    def find_wallet_id(self, plugin_id):
        for wallet_id, wallet_plugin in self.wallets.items():
            if wallet_plugin == plugin_id:
                return wallet_id
        return None

    async def get_address_balance(self, wallet_id, address, token_id):
        if self.fail_balance is not None:
            raise self.fail_balance
        return self.balances.get(address, "0")

    async def get_receive_address(self, wallet_id, token_id):
        return f"{wallet_id}-{token_id or 'native'}-address"

    async def get_tx_confirmations(self, wallet_id, tx_id):
        return self.confirmations.get(tx_id, 0)

    async def make_spend(self, wallet_id, spend_info):
        if self.fail_spend is not None:
            raise self.fail_spend
        self.spends.append((wallet_id, spend_info))
        return WalletTx(
            tx_id="",
            wallet_id=wallet_id,
            currency_code="BTC",
            native_amount=f"-{spend_info.spend_targets[0].native_amount}",
            network_fee="250",
        )

    async def sign_tx(self, wallet_id, tx):
        # Ids are known once signed, so previews never consume one
        self._next_tx += 1
        return replace(tx, tx_id=f"tx-{self._next_tx}", signed_tx=b"signed")

    async def broadcast_tx(self, wallet_id, tx):
        self.broadcasts.append(tx)
        return tx

    async def save_tx(self, wallet_id, tx):
        self.saved.append(tx)

    async def broadcast_raw_tx(self, plugin_id, raw_tx):
        self.raw_broadcasts.append((plugin_id, raw_tx))
        wallet_id = self.find_wallet_id(plugin_id)
        tx = WalletTx(
            tx_id=f"raw-{len(self.raw_broadcasts)}",
            wallet_id=wallet_id,
            currency_code="BTC",
            native_amount="0",
            signed_tx=raw_tx,
        )
        return BroadcastTx(
            wallet_id=wallet_id,
            network_fee=NetworkFee(currency_code="BTC", native_amount="0"),
            tx=tx,
        )


class FakeRates:
    """Rate provider returning rates from a dict."""

    def __init__(self, rates: dict[str, float] | None = None):
        self.rates = rates or {}

    async def get_exchange_rate(self, currency_pair):
        return self.rates[currency_pair]


class FakeApprovable:
    """Approvable action returning one broadcast tx per unsigned tx."""

    def __init__(self, wallet_id: str, tx_ids: list[str]):
        self.wallet_id = wallet_id
        self.network_fee = NetworkFee(currency_code="ETH", native_amount="100")
        self.unsigned_txs = [
            WalletTx(tx_id=tx_id, wallet_id=wallet_id, currency_code="ETH", native_amount="0")
            for tx_id in tx_ids
        ]
        self.approved = False

    def _broadcast(self):
        return [
            BroadcastTx(wallet_id=self.wallet_id, network_fee=self.network_fee, tx=tx)
            for tx in self.unsigned_txs
        ]

    async def dryrun(self, pending_txs):
        return self._broadcast()

    async def approve(self):
        self.approved = True
        return self._broadcast()


class FakeBorrowEngine:
    """Borrow engine recording requests per method."""

    def __init__(self, wallet_id: str, tx_ids: list[str] | None = None):
        self.currency_wallet_id = wallet_id
        self.tx_ids = ["loan-tx-1", "loan-tx-2"] if tx_ids is None else tx_ids
        self.requests: list[tuple[str, BorrowRequest]] = []
        self.approvables: list[FakeApprovable] = []

    async def _make(self, method: str, request: BorrowRequest) -> FakeApprovable:
        self.requests.append((method, request))
        approvable = FakeApprovable(self.currency_wallet_id, self.tx_ids)
        self.approvables.append(approvable)
        return approvable

    async def deposit(self, request):
        return await self._make("deposit", request)

    async def withdraw(self, request):
        return await self._make("withdraw", request)

    async def borrow(self, request):
        return await self._make("borrow", request)

    async def repay(self, request):
        return await self._make("repay", request)


class FakeBorrowPlugin:
    """Borrow plugin handing out one engine per wallet."""

    def __init__(self, plugin_id: str = "aave", engine_wallet_id: str | None = None):
        self.plugin_id = plugin_id
        self.engine_wallet_id = engine_wallet_id
        self.engines: dict[str, FakeBorrowEngine] = {}

    async def make_borrow_engine(self, wallet_id):
        if wallet_id not in self.engines:
            self.engines[wallet_id] = FakeBorrowEngine(self.engine_wallet_id or wallet_id)
        return self.engines[wallet_id]


class FakeSwapQuote:
    def __init__(self, request: SwapRequest):
        self.request = request
        self.from_native_amount = request.native_amount
        self.to_native_amount = request.native_amount
        self.network_fee = NetworkFee(currency_code="BTC", native_amount="300")
        self.approved = False
        self.closed = False

    async def approve(self):
        self.approved = True
        tx = WalletTx(
            tx_id="swap-tx",
            wallet_id=self.request.from_wallet_id,
            currency_code="BTC",
            native_amount=f"-{self.from_native_amount}",
        )
        return BroadcastTx(wallet_id=self.request.from_wallet_id, network_fee=self.network_fee, tx=tx)

    async def close(self):
        self.closed = True


class FakeSwap:
    """Swap provider recording every quote it hands out."""

    def __init__(self):
        self.quotes: list[FakeSwapQuote] = []

    async def fetch_swap_quote(self, request):
        quote = FakeSwapQuote(request)
        self.quotes.append(quote)
        return quote


class FakeWyre:
    """Fiat ramp with fixed deposit addresses."""

    def __init__(self):
        self.buys: list[tuple[str, str | None, str, str]] = []

    async def get_sell_address(self, wyre_account_id, wallet_id, token_id):
        return f"wyre-{wyre_account_id}-deposit"

    async def request_buy(self, wallet_id, token_id, native_amount, receive_address):
        self.buys.append((wallet_id, token_id, native_amount, receive_address))
        return f"order-{len(self.buys)}"


@pytest.fixture
def settings():
    return Settings(
        balance_poll_ms=15000,
        price_poll_ms=20000,
        tx_confs_poll_ms=30000,
        tx_confs_near_poll_ms=5000,
        push_event_poll_ms=1000,
        tx_confirmations=1,
        deferral_delay_ms=10000,
    )


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def rates():
    return FakeRates({"BTC:iso:USD": 30000.0})


@pytest.fixture
def borrow_plugin():
    return FakeBorrowPlugin()


@pytest.fixture
def swap():
    return FakeSwap()


@pytest.fixture
def wyre():
    return FakeWyre()


@pytest.fixture
def context(account, rates, borrow_plugin, swap, wyre, settings):
    return ExecutionContext(
        account=account,
        client_id="test-client",
        rates=rates,
        borrow_plugins={borrow_plugin.plugin_id: borrow_plugin},
        swap=swap,
        wyre=wyre,
        settings=settings,
    )


@pytest.fixture
def insufficient_funds():
    return InsufficientFundsError(currency_code="BTC", native_amount="5000")
