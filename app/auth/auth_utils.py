# app/auth/auth_utils.py
from datetime import datetime, timedelta
import logging
import bcrypt
from jose import jwt, JWTError
from fastapi import Header, HTTPException
from app.config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRE_DAYS

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12

# ==================== PASSWORDS ====================

def hash_password(password: str) -> str:
    """Hash a password with bcrypt (salt embedded in the result)"""
    if not password:
        raise ValueError("Password cannot be empty")
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False

# ==================== TOKENS ====================

def create_access_token(user_id: str, role: str, expires_days: int = JWT_EXPIRE_DAYS) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + timedelta(days=expires_days),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def verify_bearer_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1]
    # Decodes and checks expiration/signature
    return decode_access_token(token)
