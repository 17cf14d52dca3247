from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from brazadash import config
from brazadash.database import get_db
from brazadash.errors import Forbidden
from brazadash.models import UserRole


def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """Return the caller's user id (the token ``sub`` claim)."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Invalid or missing token")
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError(scheme)
        claims = jwt.decode(token, config.jwt_secret(), algorithms=["HS256"])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or missing token")
    return user_id


def _roles(db: Session, user_id: str):
    return db.query(UserRole).filter_by(user_id=user_id).all()


def _require_approved(role: str, message: str):
    def dependency(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)) -> str:
        approved = any(
            r.role == role and r.approval_status == "approved" for r in _roles(db, user_id)
        )
        if not approved:
            raise Forbidden(message)
        return user_id

    return dependency


require_approved_vendor = _require_approved("vendor", "Your vendor account is pending approval")
require_approved_provider = _require_approved(
    "service_provider", "Your service provider account is pending approval"
)


def require_admin(user_id: str = Depends(get_current_user), db: Session = Depends(get_db)) -> str:
    if not any(r.role == "admin" for r in _roles(db, user_id)):
        raise Forbidden("Admin access required")
    return user_id
