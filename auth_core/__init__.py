"""
Auth core: registration, email verification and token-based authentication.
"""

__version__ = "1.0.0"
