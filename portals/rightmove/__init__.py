"""Rightmove portal adapter."""

from .adapter import RightmoveAdapter

__all__ = ["RightmoveAdapter"]
