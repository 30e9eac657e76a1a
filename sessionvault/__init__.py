"""Delegated session-key credentials for autonomous Solana agents."""

__version__ = "0.1.0"
