"""
Slugline spender - builds zero-fee parent transactions that carry a rune.
"""

__version__ = "0.1.0"
