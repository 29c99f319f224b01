"""
Lead CRM - API Backend

Start with:
    uvicorn leadcrm.server:app --host 0.0.0.0 --port 8001 --reload
"""

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leadcrm.config import APP_NAME, CORS_ORIGINS, LOG_LEVEL, SCHEDULER_ENABLED
from leadcrm.errors import ServiceError

# Logging configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("leadcrm")

app = FastAPI(
    title=APP_NAME,
    description="Lead management: duplicate control, audit trail, reports",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERROR HANDLERS ====================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return _error(500, "Server Error")
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        msg = err.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        else:
            field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            if field:
                msg = f"{field}: {msg}"
        messages.append(msg)
    return _error(400, ", ".join(messages) or "Invalid request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Server Error")


# ==================== ROUTES ====================

from leadcrm.routes import auth, users, leads, reports  # noqa: E402

# Routes with /api prefix
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(leads.router, prefix="/api")
app.include_router(reports.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": f"{APP_NAME} API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    from leadcrm.config import db
    from leadcrm.services.duplicate_detector import ensure_indexes
    from leadcrm.scheduler_service import task_scheduler

    await db.users.create_index("email", unique=True)
    await db.users.create_index("id", unique=True)
    await db.sessions.create_index("token")
    await db.sessions.create_index("expires_at")
    await db.leads.create_index("id", unique=True)
    await db.activity_logs.create_index("created_at")
    await ensure_indexes()

    if SCHEDULER_ENABLED:
        task_scheduler.start()

    logger.info(f"{APP_NAME} started")


@app.on_event("shutdown")
async def shutdown():
    from leadcrm.config import client
    from leadcrm.scheduler_service import task_scheduler

    task_scheduler.stop()
    client.close()
    logger.info(f"{APP_NAME} stopped")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
