from fastapi import Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from eduable.api.auth_utils import verify_token
from eduable.progress.database import MongoRecordStore


def get_db_instance():
    """Get database from main module"""
    from eduable.main import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()

async def get_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> MongoRecordStore:
    """Record store over the application database"""
    return MongoRecordStore(db)

async def get_current_user_id(payload: dict = Depends(verify_token)) -> str:
    """The token subject is the user id"""
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return user_id
