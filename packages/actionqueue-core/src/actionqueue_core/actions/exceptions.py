"""
Validation exceptions for action evaluation.

These are raised while an op is compiled, before any side effect. A
program failing validation cannot succeed by retrying; the op itself has
to be corrected and resubmitted.

- WalletNotFoundError: Op references a wallet the account does not own
- WalletMismatchError: Provider returned a position for another wallet
- CurrencyMismatchError: Op asks for an impossible currency combination
- BorrowPluginNotFoundError: Op references an unknown lending provider
- ProviderUnavailableError: Op needs a provider the context was not given

Per project patterns:
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class ActionValidationError(Exception):
    """Base class for errors raised before any side effect."""


class WalletNotFoundError(ActionValidationError):
    """
    Raised when an op references a wallet the account does not have.

    Attributes:
        wallet_id: The wallet (or plugin id for broadcast ops) that was looked up
    """

    def __init__(self, wallet_id: str) -> None:
        self.wallet_id = wallet_id
        super().__init__(f"Wallet '{wallet_id}' not found in account")


class WalletMismatchError(ActionValidationError):
    """
    Raised when a provider resolves a different wallet than requested.

    Attributes:
        expected: Wallet id from the op
        actual: Wallet id reported by the provider
    """

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Wallet mismatch: op uses '{expected}', provider returned '{actual}'")


class CurrencyMismatchError(ActionValidationError):
    """
    Raised when an op's currencies cannot work together.

    Attributes:
        reason: What is wrong with the combination
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Currency mismatch: {reason}")


class BorrowPluginNotFoundError(ActionValidationError):
    """
    Raised when a loan op names a lending provider that is not registered.

    Attributes:
        borrow_plugin_id: The unknown plugin id
        available: Registered plugin ids
    """

    def __init__(self, borrow_plugin_id: str, available: list[str]) -> None:
        self.borrow_plugin_id = borrow_plugin_id
        self.available = available
        super().__init__(
            f"Borrow plugin '{borrow_plugin_id}' not found. "
            f"Available plugins: {available}"
        )


class ProviderUnavailableError(ActionValidationError):
    """
    Raised when an op needs a provider missing from the execution context.

    Attributes:
        provider: Name of the missing provider ("swap", "wyre", "rates")
    """

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"No '{provider}' provider configured for this account")
