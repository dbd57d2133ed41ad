"""
API Routes Package

- auth.py: /api/auth
- cloudpc.py: /api/cloudpc
- users.py: /api/users
- health.py: operational endpoints at the root
- websocket.py: /ws/cloudpc terminal channel
"""

from cloudpc.application.api.routes.auth import router as auth_router
from cloudpc.application.api.routes.cloudpc import router as cloudpc_router
from cloudpc.application.api.routes.health import router as health_router
from cloudpc.application.api.routes.users import router as users_router
from cloudpc.application.api.routes.websocket import router as websocket_router

__all__ = [
    "auth_router",
    "cloudpc_router",
    "health_router",
    "users_router",
    "websocket_router",
]
