"""
Bonding-curve tokens settled in periodic batches.
"""

__version__ = "0.1.0"
