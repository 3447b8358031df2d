import secrets
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.config import MONGO_URL, DATABASE_NAME

client = AsyncIOMotorClient(MONGO_URL)
db = client[DATABASE_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


# ==================== SERIALIZATION HELPERS ====================

def serialize_datetime(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj


def serialize_mongo(doc: dict) -> dict:
    """Drop Mongo's internal _id and the password hash before returning a document"""
    if doc is None:
        return doc
    doc.pop("_id", None)
    doc.pop("password_hash", None)
    return doc


def serialize_many(docs: list) -> list:
    return [serialize_mongo(d) for d in docs]
