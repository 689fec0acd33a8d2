"""
Ledger Service

A small account ledger: registration, token authentication, balance
inspection and atomic funds transfers between accounts.
"""

__version__ = "1.0.0"
