import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config.settings import settings
from app.config.business_config import validate_configuration
from app.core.rate_limit import limiter
from app.modules.auth import routes as auth_routes
from app.modules.profiles import routes as profiles_routes
from app.modules.clubs import routes as clubs_routes
from app.modules.memberships import routes as memberships_routes
from app.modules.subscriptions import routes as subscriptions_routes
from app.modules.webhooks import routes as webhooks_routes
from app.modules.bookings import routes as bookings_routes
from app.modules.visits import routes as visits_routes
from app.modules.daily_access import routes as daily_access_routes
from app.modules.analytics import routes as analytics_routes
from app.modules.payouts import routes as payouts_routes
from app.modules.connect import routes as connect_routes
from app.modules.messaging import routes as messaging_routes
from app.modules.notifications import routes as notifications_routes
from app.modules.gdpr import routes as gdpr_routes
from app.modules.sync import routes as sync_routes
from app.modules.sync.scheduler import scheduler

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(profiles_routes.router, prefix="/api/v1")
app.include_router(clubs_routes.router, prefix="/api/v1")
app.include_router(memberships_routes.router, prefix="/api/v1")
app.include_router(subscriptions_routes.router, prefix="/api/v1")
app.include_router(webhooks_routes.router, prefix="/api/v1")
app.include_router(bookings_routes.router, prefix="/api/v1")
app.include_router(visits_routes.router, prefix="/api/v1")
app.include_router(daily_access_routes.router, prefix="/api/v1")
app.include_router(analytics_routes.router, prefix="/api/v1")
app.include_router(payouts_routes.router, prefix="/api/v1")
app.include_router(connect_routes.router, prefix="/api/v1")
app.include_router(messaging_routes.router, prefix="/api/v1")
app.include_router(notifications_routes.router, prefix="/api/v1")
app.include_router(gdpr_routes.router, prefix="/api/v1")
app.include_router(sync_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    validate_configuration()

    if settings.enable_background_jobs:
        scheduler.start()
        logger.info("Background jobs started (Stripe sync, Daily Access rollover)")


@app.on_event("shutdown")
async def shutdown_event():
    await scheduler.stop()
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to fitpass-backend", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness check; extend here with Supabase/Stripe checks if needed."""
    return {"status": "ready"}
