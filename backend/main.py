import os

from dotenv import load_dotenv
from fastapi.openapi.utils import get_openapi

# .env must be loaded before app.core.config builds its Settings
load_dotenv()

from app.main import app  # noqa: E402

OPENAPI_TAGS = [
    {"name": "calendar", "description": "Local events, Google OAuth and two-way sync."},
    {"name": "health", "description": "Liveness/readiness probe."},
]


def custom_openapi() -> dict:
    """OpenAPI schema with service metadata and tag descriptions."""
    if not app.openapi_schema:
        app.openapi_schema = get_openapi(
            title="Calendar Sync API",
            version="1.0.0",
            description=(
                "Event calendar with Google Calendar sync. Delivery orders appear "
                "as read-only `order_<id>` entries."
            ),
            tags=OPENAPI_TAGS,
            routes=app.routes,
        )
    return app.openapi_schema


app.openapi = custom_openapi

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "1") == "1",
        workers=int(os.getenv("UVICORN_WORKERS", "1")),
        timeout_keep_alive=int(os.getenv("UVICORN_KEEPALIVE", "65")),
    )
