"""
chargeslot - real-time charging slot availability.
"""

__version__ = "0.1.0"
