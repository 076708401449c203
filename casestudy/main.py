"""
Case Study Live API - Main Application
FILE: main.py
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import time

from casestudy.core.config import settings
from casestudy.db.mongodb import (
    close_mongo_connection,
    connect_to_mongo,
    ensure_indexes,
    get_database
)
from casestudy.api.case_studies import router as case_studies_router
from casestudy.api.live import router as live_router
from casestudy.api.responses import router as responses_router
from casestudy.api.sessions import router as sessions_router
from casestudy.api.students import router as students_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("🚀 Starting Case Study Live API...")
    
    try:
        await connect_to_mongo()
        logger.info("✓ MongoDB connected")
        
        try:
            await ensure_indexes()
        except Exception as e:
            logger.warning(f"⚠ Index setup warning: {e}")
        
    except Exception as e:
        logger.error(f"❌ Startup error: {e}")
        raise
    
    yield
    
    logger.info("🛑 Shutting down Case Study Live API...")
    
    try:
        await close_mongo_connection()
        logger.info("✓ Cleanup complete")
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title=settings.api_title,
    description="""
    Live, section-gated case study sessions.
    
    ## Features
    - **Case studies**: sections of reading content with questions
    - **Sessions**: join codes, instructor-controlled section releases
    - **Progress**: where each student should resume, and what they may navigate to
    - **Live updates**: WebSocket push of newly released sections
    
    ## Endpoints
    - **Case studies**: `/api/case-studies/*`
    - **Sessions**: `/api/sessions/*`
    - **Join**: `/api/join/{code}`
    - **Responses**: `/api/sessions/{id}/responses`, `/api/responses/{id}/grade`
    - **Live**: `ws /ws/sessions/{code}`
    - **Health**: `/health`
    """,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000  # Convert to ms
    response.headers["X-Process-Time-Ms"] = str(round(process_time, 2))
    return response


# Request logging middleware
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

app.include_router(case_studies_router, tags=["Case Studies"])
app.include_router(sessions_router, tags=["Sessions"])
app.include_router(students_router, tags=["Students"])
app.include_router(responses_router, tags=["Responses"])
app.include_router(live_router, tags=["Live"])


# ==================== ROOT ENDPOINTS ====================

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": settings.api_title,
        "version": settings.api_version,
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "case_studies": "/api/case-studies",
            "sessions": "/api/sessions",
            "join": "/api/join/{code}",
            "live": "/ws/sessions/{code}",
            "health": "/health"
        }
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check for the API and its MongoDB connection
    
    Returns:
        Health status per component; 503 when MongoDB is unreachable
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "components": {}
    }
    
    try:
        await get_database().command("ping")
        health_status["components"]["mongodb"] = {
            "status": "healthy",
            "message": "Connected and responsive"
        }
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["components"]["mongodb"] = {
            "status": "unhealthy",
            "message": str(e)
        }
        logger.error(f"❌ MongoDB health check failed: {e}")
    
    health_status["api"] = {
        "title": app.title,
        "version": app.version,
        "status": "operational"
    }
    
    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


# ==================== RUN APPLICATION ====================

if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "casestudy.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level="info"
    )
