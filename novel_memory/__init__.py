"""
Novel Memory: hierarchical memory retrieval for long-form novel generation.

Assembles short-term, mid-term and long-term narrative memory into a single
token-budgeted context block for a chapter generation prompt.
"""

__version__ = "0.1.0"
