# parceltrack/common/__init__.py
"""
Shared constants, error taxonomy and logging.
"""
