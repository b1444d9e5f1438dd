"""
Slugline searcher - sponsors zero-fee rune transactions with CPFP children.
"""

__version__ = "0.1.0"
