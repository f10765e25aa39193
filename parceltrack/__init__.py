# parceltrack/__init__.py
"""
parceltrack: shipment lifecycle and driver-assignment engine.
"""

__version__ = "0.3.0"
