import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from mindwell.api.errors import register_error_handlers
from mindwell.api.v1 import community, interventions, mood, progress, resources, users

# Ensure app loggers (advisory fallbacks, deletes, jobs) print to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("mindwell").setLevel(logging.DEBUG)
from mindwell.config import settings
from mindwell.db.session import init_db
from prometheus_client import make_asgi_app

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def scheduled_streak_reset():
    """Zero the streak of every user who did not check in yesterday or today."""
    from mindwell.db.base import utcnow
    from mindwell.db.session import async_session_maker
    from mindwell.services.storage import reset_stale_streaks

    async with async_session_maker() as session:
        count = await reset_stale_streaks(session, utcnow().date())
        await session.commit()
    logger.info("Streak reset: %d progress rows reset", count)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    hour = settings.streak_reset_hour if 0 <= settings.streak_reset_hour <= 23 else 3
    scheduler.add_job(scheduled_streak_reset, "cron", hour=hour, minute=0)
    scheduler.start()
    yield
    scheduler.shutdown()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    enabled=settings.rate_limit_enabled,
)

app = FastAPI(
    title="MindWell API",
    description="Mental-wellness backend: mood tracking, guided interventions, progress, community",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(users.router, prefix="/api/v1")
app.include_router(mood.router, prefix="/api/v1")
app.include_router(interventions.router, prefix="/api/v1")
app.include_router(interventions.cbt_router, prefix="/api/v1")
app.include_router(progress.router, prefix="/api/v1")
app.include_router(community.router, prefix="/api/v1")
app.include_router(resources.router, prefix="/api/v1")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}
