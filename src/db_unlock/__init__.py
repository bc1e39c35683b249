"""Unlock SQLCipher databases and remember the password in the OS keyring."""

__version__ = "0.1.0"
