"""
VPS Setup — phase-based security hardening for fresh Linux servers.
"""

__version__ = "0.1.0"
