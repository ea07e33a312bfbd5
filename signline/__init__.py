"""SignLine: sign-language practice backend for the MRT line game."""

__version__ = "1.0.0"
