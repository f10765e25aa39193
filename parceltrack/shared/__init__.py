# parceltrack/shared/__init__.py
"""
Code shared between the engine and the HTTP surface.

Modules:
- models: entities, request bodies and response DTOs
- events: realtime topic payloads
"""

__all__: list[str] = []
