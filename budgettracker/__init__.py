"""
Budget tracker intelligence service: AI recommendations and natural-language queries.
"""

__version__ = "0.1.0"
