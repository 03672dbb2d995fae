import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from loanbook.core.security import decode_token
from loanbook.db.session import SessionLocal

ROLES = ("admin", "viewer")

bearer = HTTPBearer()


def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    """Claims of a valid token: ``sub`` is the username, ``role`` one of ROLES."""
    try:
        claims = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")
    if not claims.get("sub") or claims.get("role") not in ROLES:
        raise HTTPException(status_code=401, detail="invalid_token")
    return claims


def require_admin(u: dict = Depends(current_user)) -> dict:
    # posting, binning and purging are admin-only; viewers read
    if u["role"] != "admin":
        raise HTTPException(status_code=403, detail="admin_only")
    return u
