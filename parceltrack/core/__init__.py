# parceltrack/core/__init__.py
"""
Shipment lifecycle and driver-assignment engine.
"""
