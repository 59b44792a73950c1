"""
Quiz Platform API - Main Application
Quiz authoring, attempt scoring, dashboards and leaderboards
FILE: quizcore/main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from quizcore.core.config import settings
from quizcore.core.errors import register_exception_handlers
from quizcore.db.mongodb import connect_to_mongo, close_mongo_connection, ping
from quizcore.api.deps import get_attempt_store, get_quiz_store
from quizcore.api.quizzes import router as quizzes_router
from quizcore.api.attempts import router as attempts_router
from quizcore.api.dashboard import router as dashboard_router
from quizcore.services.llm_client import provider_status

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("🚀 Starting Quiz Platform API...")

    try:
        await connect_to_mongo()
        logger.info("✓ MongoDB connected")

        await get_attempt_store().ensure_indexes()
        await get_quiz_store().ensure_indexes()

        logger.info("✓ All connections initialized")

    except Exception as e:
        logger.error(f"❌ Startup error: {e}")
        raise

    yield

    logger.info("🛑 Shutting down Quiz Platform API...")

    try:
        await close_mongo_connection()
        logger.info("✓ Cleanup complete")

    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Quiz Platform API",
    description="""
    Quiz platform backend with LLM quiz generation, attempt scoring and dashboards.

    ## Features
    - **Quizzes**: Create quizzes or generate them with OpenAI, Anthropic or Grok
    - **Attempts**: Start, answer, flag, complete and review attempts
    - **Scoring**: Per-question breakdown, grade, GPA and recommendations
    - **Dashboards**: Stats, weekly progress, subject trends, streaks and rank
    - **Leaderboards**: Best and average scores, optionally per quiz

    ## Endpoints
    - **Quizzes**: `/api/quizzes/*`
    - **Attempts**: `/api/attempts/*`
    - **Dashboard**: `/api/dashboard/*`
    - **Leaderboard**: `/api/leaderboard`
    - **Health**: `/health`

    The acting user is identified by the `X-User-Id` header.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

register_exception_handlers(app)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000
    response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(f"📨 {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(
        f"📤 {request.method} {request.url.path} - "
        f"Status: {response.status_code}"
    )
    return response


# ==================== INCLUDE ROUTERS ====================

app.include_router(quizzes_router, prefix="/api", tags=["Quizzes"])
app.include_router(attempts_router, prefix="/api", tags=["Attempts"])
app.include_router(dashboard_router, prefix="/api", tags=["Dashboard"])


# ==================== ROOT ENDPOINTS ====================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Quiz Platform API",
        "version": "1.0.0",
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "quizzes": "/api/quizzes",
            "attempts": "/api/attempts",
            "dashboard": "/api/dashboard",
            "leaderboard": "/api/leaderboard",
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check for MongoDB and LLM configuration

    Returns:
        200 when MongoDB answers a ping, 503 otherwise
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }

    overall_healthy = True

    try:
        if await ping():
            health_status["components"]["mongodb"] = {
                "status": "healthy",
                "message": "Connected and responsive"
            }
        else:
            overall_healthy = False
            health_status["components"]["mongodb"] = {
                "status": "unhealthy",
                "message": "Not connected"
            }
    except Exception as e:
        overall_healthy = False
        health_status["components"]["mongodb"] = {
            "status": "unhealthy",
            "message": str(e)
        }
        logger.error(f"❌ MongoDB health check failed: {e}")

    health_status["components"]["llm"] = provider_status()

    health_status["status"] = "healthy" if overall_healthy else "degraded"
    health_status["api"] = {
        "title": app.title,
        "version": app.version,
        "status": "operational"
    }

    return JSONResponse(
        status_code=200 if overall_healthy else 503,
        content=health_status
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quizcore.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
