"""
Eduable Learning Progress - Route & Index Setup
Quiz submission, lesson completion and certificate issuance
"""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from eduable.progress.quiz_router import router as quiz_router
from eduable.progress.lesson_router import router as lesson_router
from eduable.progress.certificate_router import router as certificate_router
from eduable.progress.schemas import create_all_indexes

logger = logging.getLogger(__name__)

# ==================== ROUTER SETUP ====================

def setup_progress_routes(app: FastAPI, prefix: str = "/api"):
    """Register all progress-related routers and the store error handler"""

    app.include_router(quiz_router, prefix=prefix)
    app.include_router(lesson_router, prefix=prefix)
    app.include_router(certificate_router, prefix=prefix)
    app.add_exception_handler(PyMongoError, record_store_error_handler)

    logger.info("Progress routes registered under %s", prefix)


async def record_store_error_handler(request, exc: PyMongoError):
    logger.error("Record store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Record store unavailable"})

# ==================== STARTUP ====================

async def startup_progress_system(db):
    """Initialize progress collections on app startup"""
    created = await create_all_indexes(db)
    logger.info("Progress system initialized (%d indexes ensured)", created)
