"""Stellar vault client: cached reads, transaction pipeline and event feed for a Soroban vault."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the stellar-vault script."""
    import sys

    from stellar_vault.cli import main

    raise SystemExit(main(sys.argv[1:]))


def _clear_cache_entry_point() -> NoReturn:
    """Entry point for clearing the cache."""
    from stellar_vault.cache import clear_cache

    clear_cache()
    raise SystemExit(0)
