"""Solana Buy Tracker - buy alerts for Solana token mints."""

__version__ = "0.1.0"
