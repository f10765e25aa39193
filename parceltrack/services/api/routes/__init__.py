# parceltrack/services/api/routes/__init__.py
"""
HTTP and WebSocket routers.
"""

from parceltrack.services.api.routes.drivers import router as drivers_router
from parceltrack.services.api.routes.realtime import router as realtime_router
from parceltrack.services.api.routes.shipments import router as shipments_router
from parceltrack.services.api.routes.users import router as users_router

__all__ = ["drivers_router", "realtime_router", "shipments_router", "users_router"]
