"""
Action effects: what to observe before a program step counts as finished.

Executing an op yields an effect - a condition on live account state
(balance, price, confirmations, pushed event) that becomes true once the
op has really taken place. Composite effects (seq, par) mirror the op tree
and hold one child effect per child op that has run.

A DoneEffect is terminal: once an op reaches it, it is never evaluated or
checked again. Errors and cancellation are both reported through it.

Per project patterns:
- Pydantic BaseModel for JSON persistence of program state
- Discriminated union on the "type" field
- Errors stored as ActionError records, not exception objects
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from actionqueue_core.actions.ops import validate_native_amount


class ActionError(BaseModel):
    """
    Serializable record of an exception that ended an action.

    Attributes:
        name: Exception class name (e.g. "InsufficientFundsError")
        message: str() of the exception
    """

    name: str = Field(..., description="Exception class name")
    message: str = Field(default="", description="Exception message")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ActionError":
        """Build a record from a raised exception."""
        return cls(name=type(exc).__name__, message=str(exc))

    def __str__(self) -> str:
        return f"{self.name}: {self.message}" if self.message else self.name


class SeqEffect(BaseModel):
    """
    Progress of a seq op.

    child_effects holds the effects of the children run so far; children
    that have not run yet are absent, so len(child_effects) <= op_index + 1.
    Children before op_index are always DoneEffect.
    """

    type: Literal["seq"] = "seq"
    op_index: int = Field(default=0, ge=0, description="Index of the active child op")
    child_effects: list["ActionEffect"] = Field(default_factory=list)

    @property
    def active_effect(self) -> "ActionEffect | None":
        """Effect of the active child, None if it has not run yet."""
        if self.op_index < len(self.child_effects):
            return self.child_effects[self.op_index]
        return None


class ParEffect(BaseModel):
    """Progress of a par op, one effect per child op."""

    type: Literal["par"] = "par"
    child_effects: list["ActionEffect"] = Field(default_factory=list)


class AddressBalanceEffect(BaseModel):
    """
    Wait for the balance of an address to cross a bound.

    Effective when balance > above_amount and balance < below_amount, for
    whichever bounds are set. At least one bound is required.
    """

    type: Literal["address-balance"] = "address-balance"
    address: str
    above_amount: str | None = None
    below_amount: str | None = None
    wallet_id: str
    token_id: str | None = None

    @field_validator("above_amount", "below_amount")
    @classmethod
    def check_amounts(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return validate_native_amount(value)

    @model_validator(mode="after")
    def check_bounds(self) -> "AddressBalanceEffect":
        if self.above_amount is None and self.below_amount is None:
            raise ValueError("address-balance effect needs above_amount or below_amount")
        return self


class PriceLevelEffect(BaseModel):
    """Wait for an exchange rate to cross a bound. At least one bound is required."""

    type: Literal["price-level"] = "price-level"
    currency_pair: str
    above_rate: float | None = None
    below_rate: float | None = None

    @model_validator(mode="after")
    def check_bounds(self) -> "PriceLevelEffect":
        if self.above_rate is None and self.below_rate is None:
            raise ValueError("price-level effect needs above_rate or below_rate")
        return self


class TxConfsEffect(BaseModel):
    """Wait for a transaction to reach a confirmation count."""

    type: Literal["tx-confs"] = "tx-confs"
    tx_id: str
    wallet_id: str
    confirmations: int = Field(default=1, ge=0)


class PushEventEffect(BaseModel):
    """Wait for an externally signaled event, then for the nested effect if any."""

    type: Literal["push-event"] = "push-event"
    event_id: str
    effect: "ActionEffect | None" = None


class DoneEffect(BaseModel):
    """Terminal effect: finished, failed (error set) or cancelled."""

    type: Literal["done"] = "done"
    error: ActionError | None = None
    cancelled: bool = False

    @classmethod
    def from_exception(cls, exc: BaseException) -> "DoneEffect":
        """Terminal effect carrying a raised exception."""
        return cls(error=ActionError.from_exception(exc))

    @property
    def failed(self) -> bool:
        return self.error is not None


ActionEffect = Annotated[
    Union[
        SeqEffect,
        ParEffect,
        AddressBalanceEffect,
        PriceLevelEffect,
        TxConfsEffect,
        PushEventEffect,
        DoneEffect,
    ],
    Field(discriminator="type"),
]
"""Any effect, discriminated by its type tag."""

SeqEffect.model_rebuild()
ParEffect.model_rebuild()
PushEventEffect.model_rebuild()


def is_failed(effect: object) -> bool:
    """Return True for a DoneEffect carrying an error."""
    return isinstance(effect, DoneEffect) and effect.error is not None


def first_failure(effects: list) -> DoneEffect | None:
    """Return the lowest-index failed DoneEffect, or None."""
    for effect in effects:
        if is_failed(effect):
            return effect
    return None
