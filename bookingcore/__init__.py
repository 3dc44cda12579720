"""
bookingcore - appointment availability and recurring session scheduling.
"""

__version__ = "0.1.0"
