"""Error taxonomy and classifiers for vault operations."""

from enum import Enum


class AppErrorType(str, Enum):
    WALLET_NOT_FOUND = "WALLET_NOT_FOUND"
    TRANSACTION_REJECTED = "TRANSACTION_REJECTED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    FUNDS_TIMELOCKED = "FUNDS_TIMELOCKED"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONTRACT_ERROR = "CONTRACT_ERROR"


class AppError(Exception):
    """A user-facing failure classified into exactly one `AppErrorType`."""

    def __init__(self, type_: AppErrorType, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.type = type_
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"AppError({self.type.value}, {self.message!r})"


# Substrings of the contract's panic messages, checked in order.
SIMULATION_ERROR_RULES: tuple[tuple[str, AppErrorType, str], ...] = (
    ("timelocked", AppErrorType.FUNDS_TIMELOCKED, "Your funds are still timelocked."),
    ("insufficient vault balance", AppErrorType.INSUFFICIENT_BALANCE, "You have insufficient vault balance."),
)

SIGNER_REJECTION_MARKERS: tuple[str, ...] = ("declined", "rejected", "cancel", "denied")


def classify_simulation_error(error_text: str | None) -> AppError:
    """
    Map a simulation error message to an `AppError`.

    The RPC only returns free text for contract panics, so this matches on substrings of the
    messages the vault contract panics with. Unknown messages become CONTRACT_ERROR with the raw text.
    """
    text = error_text or "Simulation failed"
    lowered = text.lower()
    for needle, type_, message in SIMULATION_ERROR_RULES:
        if needle in lowered:
            return AppError(type_, message, details=text)
    return AppError(AppErrorType.CONTRACT_ERROR, text)


def classify_signer_error(error_text: str | None) -> AppError:
    """Map a signer failure message to an `AppError`. Every signing failure is TRANSACTION_REJECTED."""
    text = error_text or ""
    lowered = text.lower()
    if any(marker in lowered for marker in SIGNER_REJECTION_MARKERS):
        return AppError(
            AppErrorType.TRANSACTION_REJECTED, "You rejected the transaction in your wallet.", details=text
        )
    return AppError(AppErrorType.TRANSACTION_REJECTED, text or "Wallet signing failed")


def account_not_funded_error(details: str | None = None) -> AppError:
    return AppError(
        AppErrorType.INSUFFICIENT_BALANCE,
        "Account not found or not funded on testnet. Use Friendbot first.",
        details=details,
    )
