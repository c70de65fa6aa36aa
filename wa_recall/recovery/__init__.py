"""Deleted-message recovery built on top of the expiring cache."""

from .engine import RecoveryEngine

__all__ = ["RecoveryEngine"]
