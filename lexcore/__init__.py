"""
LexCore
Access control and client lifecycle core for the legal practice platform
"""

__version__ = "1.0.0"
