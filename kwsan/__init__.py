"""
kwsan - Hardware-based drive sanitization following NIST 800-88

This package detects the strongest hardware erase command each drive supports,
runs it after explicit operator confirmation, and issues a certificate of
sanitization.
"""

__version__ = "0.1.0"
