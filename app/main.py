import sys, os
sys.path.append(os.path.dirname(__file__)) # docker runs main.py from inside app/
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from common.log_handler import log
from database.models import AdminAuthBase
from database.session import get_engine
from api.rate_limiter import limiter


load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    async with engine.begin() as conn:
        log.info("Creating database tables if they do not exist")
        await conn.run_sync(AdminAuthBase.metadata.create_all)

    try:
        yield
    finally:
        await engine.dispose()
        log.info("Database engine disposed")

DEV = os.getenv("DEV", "FALSE").upper() == "TRUE"

if DEV:
    app = FastAPI(debug=True, title="Admin 2FA backend DEVELOPMENT", lifespan=lifespan)
    log.warning("Starting **development** server")
else:
    app = FastAPI(title="Admin 2FA backend", lifespan=lifespan, openapi_url=None, docs_url=None, redoc_url=None)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
from api import router as api_router
app.include_router(api_router)

allowed_origins = [origin.strip() for origin in os.getenv("FRONTEND_URL", "").split(",") if origin.strip()]
if DEV:
    allowed_origins += ["http://localhost:3000", "http://localhost:5000", "http://localhost:8000", "http://localhost:8001"]
    log.warning("CORS allowed origins set for development")
elif not allowed_origins:
    raise ValueError("FRONTEND_URL is not set")


app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    import uvicorn

    log.warning("Starting development server")
    uvicorn.run("main:app", host="0.0.0.0", port=8001, reload=True)
