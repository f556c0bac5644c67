from fastapi import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from .router import admin_router as router


@router.get("/metrics") # counters live in process memory, a restart resets them
async def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
