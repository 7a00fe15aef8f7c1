"""
webtrawl

A concurrent web crawler, forced-browsing and fuzzing engine.
"""

__version__ = "0.1.0"
