"""
accountvault - encrypted JSON account store

See accountvault.core.accounts for the public API.
"""

__version__ = "0.1.0"
