"""Bins, positions, rewards and oracle state of a liquidity-book (DLMM) pool."""

__version__ = "0.1.0"

__all__ = ["bin", "oracle", "position", "rewards"]