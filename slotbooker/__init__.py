"""
slotbooker - appointment availability and booking against a Microsoft 365 calendar.
"""

__version__ = "0.1.0"
