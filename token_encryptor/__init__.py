"""
One-time migration of plaintext OAuth credentials into encrypted form.
"""

__version__ = "0.1.0"
