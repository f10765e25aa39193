# parceltrack/services/api/__init__.py
"""
HTTP/WebSocket surface of the shipment engine.
"""
