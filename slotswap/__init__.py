"""
SlotSwap - publish calendar slots and negotiate one-to-one swaps.
"""

__version__ = "0.1.0"
