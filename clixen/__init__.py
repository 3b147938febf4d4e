"""Clixen entitlement and inbound-message routing core."""

__version__ = "1.0.0"
