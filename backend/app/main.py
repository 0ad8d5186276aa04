"""
PeopleMetrics — FastAPI Application Entry Point

Aggregates all routers, configures middleware and initializes the database
on startup.
"""
import os
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import get_settings
from app.database import init_db, SessionLocal
from app.routes import mpesa_router, subscription_router, report_router
from app.schemas.schemas import HealthResponse

settings = get_settings()

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Backend for HR document analysis. Reports are gated behind a subscription "
        "paid with M-Pesa STK push: charge initiation, status reconciliation across "
        "callback log, payment record and gateway query, and idempotent activation."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize database tables and log boot info."""
    init_db()

    # Ensure log directory
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    boot_msg = (
        f"\n{'='*60}\n"
        f"  {settings.APP_NAME} v{settings.APP_VERSION}\n"
        f"  TIME: {datetime.now().isoformat()}\n"
        f"  MPESA: {settings.MPESA_BASE_URL} "
        f"({'[OK] credentials loaded' if settings.MPESA_CONSUMER_KEY else '[!] credentials missing'})\n"
        f"  CALLBACK: {settings.MPESA_CALLBACK_URL}\n"
        f"  GEMINI KEY: {'[OK] Loaded' if settings.GEMINI_API_KEY else '[!] Missing'}\n"
        f"  DATABASE: {settings.DATABASE_URL}\n"
        f"  DEBUG: {settings.DEBUG}\n"
        f"{'='*60}\n"
    )
    print(boot_msg)

    log_file = os.path.join(settings.LOG_DIR, "server.log")
    with open(log_file, "a") as f:
        f.write(boot_msg)


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        print(f"  -> {request.method} {request.url.path} -> {response.status_code} ({duration}ms)")

    return response


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(mpesa_router)
app.include_router(subscription_router)
app.include_router(report_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def deep_health():
    """Detailed health check including dependency statuses."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        database="connected" if db_ok else "disconnected",
        ai_analysis="available" if settings.GEMINI_API_KEY else "unavailable",
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
        version=settings.APP_VERSION,
        details={"mpesa_configured": bool(settings.MPESA_CONSUMER_KEY and settings.MPESA_CONSUMER_SECRET)},
    )
