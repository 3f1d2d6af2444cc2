"""Input validation and client-side guards, applied before anything is submitted."""

from decimal import Decimal, InvalidOperation

from stellar_vault.errors import AppError, AppErrorType
from stellar_vault.formatters import format_date
from stellar_vault.models import UserVault


def is_valid_amount(value: str) -> bool:
    """True for a finite, positive decimal string."""
    if not value or not value.strip():
        return False
    try:
        num = Decimal(value.strip())
    except InvalidOperation:
        return False
    return num.is_finite() and num > 0


def validate_amount(amount: int) -> None:
    if amount <= 0:
        raise AppError(AppErrorType.CONTRACT_ERROR, "Amount must be > 0")


def ensure_withdrawable(user_vault: UserVault, *, now: int) -> None:
    """Refuse a withdrawal while the user's funds are timelocked."""
    if user_vault.is_locked(now):
        raise AppError(
            AppErrorType.FUNDS_TIMELOCKED,
            "Your funds are still timelocked.",
            details=f"unlocks at {format_date(user_vault.timelock)}",
        )


def validate_unlock_time(unlock_time: int, *, now: int) -> None:
    """The contract only accepts unlock times in the future."""
    if unlock_time <= now:
        raise AppError(AppErrorType.CONTRACT_ERROR, "Unlock time must be in the future")
