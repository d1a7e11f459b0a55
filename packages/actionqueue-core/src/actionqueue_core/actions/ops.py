"""
Action operations: the declarative language of action programs.

An action program is a tree of ops. Composite ops (seq, par) order their
children; leaf ops describe a single financial operation with everything
needed to execute it. Ops are pure descriptions and never hold runtime
state - progress is tracked separately in ActionEffect records.

Per project patterns:
- Pydantic BaseModel for validation and serialization
- Frozen models: programs are read-only after creation
- Discriminated union on the "type" field for JSON round-trips
"""

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NATIVE_AMOUNT = re.compile(r"[0-9]+")


def validate_native_amount(value: str) -> str:
    """
    Check that a native amount is a non-negative integer string.

    Native amounts are arbitrary precision, so they stay strings and are
    compared as Python ints.

    Raises:
        ValueError: If the value is not a base-10 integer >= 0
    """
    if not _NATIVE_AMOUNT.fullmatch(value):
        raise ValueError(f"native amount must be a non-negative integer string, got {value!r}")
    return value


class _Op(BaseModel):
    """Base configuration shared by all ops."""

    model_config = ConfigDict(frozen=True)


class SeqActionOp(_Op):
    """Run child ops one after another, each waiting for the previous to finish."""

    type: Literal["seq"] = "seq"
    actions: list["ActionOp"] = Field(..., description="Child ops in execution order")


class ParActionOp(_Op):
    """Run child ops at the same time; finished when every child is."""

    type: Literal["par"] = "par"
    actions: list["ActionOp"] = Field(..., description="Child ops run concurrently")


class BroadcastTxActionOp(_Op):
    """Broadcast a transaction that was signed elsewhere."""

    type: Literal["broadcast-tx"] = "broadcast-tx"
    plugin_id: str = Field(..., description="Currency plugin that owns the transaction")
    raw_tx: str = Field(..., description="Signed transaction, hex encoded")

    @field_validator("raw_tx")
    @classmethod
    def check_raw_tx(cls, value: str) -> str:
        bytes.fromhex(value)
        return value.lower()

    @property
    def raw_tx_bytes(self) -> bytes:
        """The signed transaction as bytes."""
        return bytes.fromhex(self.raw_tx)


class _AmountOp(_Op):
    native_amount: str = Field(..., description="Amount in the currency's smallest unit")
    wallet_id: str = Field(..., description="Wallet the op acts on")
    token_id: str | None = Field(default=None, description="Token, None for parent currency")

    @field_validator("native_amount")
    @classmethod
    def check_native_amount(cls, value: str) -> str:
        return validate_native_amount(value)


class WyreBuyActionOp(_AmountOp):
    """Buy crypto with fiat through Wyre, delivered to the wallet."""

    type: Literal["wyre-buy"] = "wyre-buy"


class WyreSellActionOp(_AmountOp):
    """Sell crypto for fiat by sending it to a Wyre deposit address."""

    type: Literal["wyre-sell"] = "wyre-sell"
    wyre_account_id: str = Field(..., description="Wyre account receiving the fiat")


class _LoanOp(_AmountOp):
    borrow_plugin_id: str = Field(..., description="Lending provider plugin id")


class LoanBorrowActionOp(_LoanOp):
    """Borrow against collateral."""

    type: Literal["loan-borrow"] = "loan-borrow"


class LoanDepositActionOp(_LoanOp):
    """Deposit collateral."""

    type: Literal["loan-deposit"] = "loan-deposit"


class LoanRepayActionOp(_LoanOp):
    """Repay a loan, optionally paying with a different token."""

    type: Literal["loan-repay"] = "loan-repay"
    from_token_id: str | None = Field(
        default=None, description="Token used to repay, None to repay in kind"
    )


class LoanWithdrawActionOp(_LoanOp):
    """Withdraw collateral."""

    type: Literal["loan-withdraw"] = "loan-withdraw"


class SwapActionOp(_Op):
    """Swap between two wallets/tokens."""

    type: Literal["swap"] = "swap"
    amount_for: Literal["from", "to"] = Field(
        ..., description="Whether native_amount is the exact input or output"
    )
    from_wallet_id: str
    from_token_id: str | None = None
    to_wallet_id: str
    to_token_id: str | None = None
    native_amount: str

    @field_validator("native_amount")
    @classmethod
    def check_native_amount(cls, value: str) -> str:
        return validate_native_amount(value)


ActionOp = Annotated[
    Union[
        SeqActionOp,
        ParActionOp,
        BroadcastTxActionOp,
        WyreBuyActionOp,
        WyreSellActionOp,
        LoanBorrowActionOp,
        LoanDepositActionOp,
        LoanRepayActionOp,
        LoanWithdrawActionOp,
        SwapActionOp,
    ],
    Field(discriminator="type"),
]
"""Any node of an action program, discriminated by its type tag."""

LoanActionOp = Union[
    LoanBorrowActionOp, LoanDepositActionOp, LoanRepayActionOp, LoanWithdrawActionOp
]

SeqActionOp.model_rebuild()
ParActionOp.model_rebuild()


def is_composite(op: BaseModel) -> bool:
    """Return True for seq/par ops."""
    return isinstance(op, (SeqActionOp, ParActionOp))
