"""medtrack: family medical tracking service with calendar export."""

__version__ = "0.1.0"
