"""
NestSwap swap engine.

Swap request lifecycle and conflict resolution for the property-swap
marketplace.
"""

__version__ = "1.0.0"
