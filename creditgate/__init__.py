"""
Credit Gate API - credit-metered access to third-party AI operations.
"""

__version__ = "0.1.0"
