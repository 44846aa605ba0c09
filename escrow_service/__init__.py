"""
Escrow Service
Holds buyer payments in escrow until delivery is confirmed or a dispute is resolved.
"""

__version__ = "0.1.0"
