from datetime import datetime, timedelta

from jose import jwt, JWTError
from fastapi import Header, HTTPException

from app.config import JWT_SECRET_KEY, JWT_ALGORITHM


def decode_access_token(token: str) -> dict:
    if not JWT_SECRET_KEY:
        raise HTTPException(status_code=401, detail="Authentication is not configured")
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def create_access_token(user_id: str, email: str = None, expires_in_seconds: int = 3600) -> str:
    """Issue a token in the same shape as the identity provider (used by scripts and tests)"""
    payload = {
        "sub": user_id,
        "email": email,
        "exp": datetime.utcnow() + timedelta(seconds=expires_in_seconds),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_access_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1]
    payload = decode_access_token(token)
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token: missing user_id")
    return payload
