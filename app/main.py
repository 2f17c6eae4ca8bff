import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.core.exceptions import PortalError
from app.database.inventory_store import get_inventory_store
from app.modules.inventory import routes as inventory_routes
from app.modules.deployments import routes as deployments_routes
from app.modules.terraform import routes as terraform_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PortalError)
async def portal_exception_handler(request: Request, exc: PortalError):
    # "error" is the key the portal UI reads
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    """Hardening headers on every response; API responses are never cached (clients poll status)."""

    def __init__(self, app, api_prefix: str):
        self.app = app
        self.api_prefix = api_prefix

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        is_api = scope["path"].startswith(self.api_prefix)

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = message.setdefault("headers", [])
                headers.append((b"X-Content-Type-Options", b"nosniff"))
                headers.append((b"X-Frame-Options", b"DENY"))
                if is_api:
                    headers.append((b"Cache-Control", b"no-store"))
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware, api_prefix=settings.api_prefix)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(inventory_routes.router, prefix=settings.api_prefix)
app.include_router(deployments_routes.router, prefix=settings.api_prefix)
app.include_router(terraform_routes.router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    logger.info("TerraPortal API starting")
    logger.info(f"Execution mode: {settings.execution_mode}")
    logger.info(f"Inventory: {settings.inventory_path} (mirror: {settings.inventory_mirror})")
    logger.info(
        f"State backend: Azure Blob ({settings.tf_state_storage_account}/{settings.tf_state_container})"
    )
    get_inventory_store()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "Welcome to terraportal", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: the inventory must be readable."""
    get_inventory_store().read()
    return {"status": "ready"}
