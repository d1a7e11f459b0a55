"""
Errors raised by the capability layer.

These are resource errors: the wallet or provider refused the request
because of the account's state, not because the request was malformed.
The action queue surfaces them unchanged.
"""


class InsufficientFundsError(Exception):
    """
    Raised when a wallet cannot fund a spend.

    Attributes:
        currency_code: Currency that is short, if known
        native_amount: Amount that was requested, if known
    """

    def __init__(
        self,
        currency_code: str | None = None,
        native_amount: str | None = None,
    ) -> None:
        self.currency_code = currency_code
        self.native_amount = native_amount
        detail = f" {currency_code}" if currency_code else ""
        super().__init__(f"Insufficient funds{detail}")
