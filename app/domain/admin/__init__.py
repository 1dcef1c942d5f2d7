"""
Admin Domain

Back-office panel: provider credentials, scraped HomeServe services and
calendar blocks. Every route requires a Firebase ID token.

ENDPOINTS:
- GET/POST /admin/config/homeserve
- GET/POST /admin/config/render
- GET /admin/services/homeserve
- PUT /admin/services/homeserve/{id}
- POST /admin/services/homeserve/delete
- GET/POST /admin/blocks, DELETE /admin/blocks/{id}
"""

from .router import router

__all__ = ["router"]
