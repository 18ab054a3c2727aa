"""
app/api/routers package marker.
"""

from app.api.routers.envios import router as envios_router

__all__ = [
    "envios_router",
]
