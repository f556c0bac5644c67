from api.router import router
from api.auth import router as auth_router, totp_settings
from api.admin import metrics

router.include_router(auth_router.router)
router.include_router(totp_settings.router)
router.include_router(metrics.router)


@router.get("/")
async def index():
    return {"message": "Why are you here?"}
