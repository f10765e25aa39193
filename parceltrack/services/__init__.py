# parceltrack/services/__init__.py
"""
Network services.
"""
