"""
slotguard - appointment double-booking and time-conflict resolution.
"""

__version__ = "0.1.0"
