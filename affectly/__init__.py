"""Affectly: mood journal backend with tier entitlements and Paystack upgrades."""

__version__ = "0.1.0"
