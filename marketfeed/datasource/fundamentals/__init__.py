"""
Company fundamentals vendors.
"""

from marketfeed.datasource.fundamentals.gemini import GeminiFundamentalsProvider

__all__ = ["GeminiFundamentalsProvider"]
