"""
slotbook - employee scheduling and slot booking.
"""

__version__ = "0.1.0"
