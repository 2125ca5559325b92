"""
Authentication and authorization

The chain a mutating route goes through:

    get_current_user   -> 401 when the bearer token (or `token` cookie) is missing or invalid
    require_role(...)  -> 403 when the caller's role is not allowed
    owned_resource(..) -> 404 when the target is missing, 403 when the caller neither owns it nor is an admin
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db, sanitize, to_obj_id
from errors import Forbidden, NotFoundError, Unauthenticated, ValidationError

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=10)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


# region Credentials

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(user_id: str, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    return jwt.encode({"sub": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> str:
    """ Token -> user id """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise Unauthenticated()
    user_id = payload.get("sub")
    if user_id is None:
        raise Unauthenticated()
    return user_id


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def generate_reset_token():
    """ Returns (token to email, hash to store) """
    token = secrets.token_hex(20)
    return token, hash_reset_token(token)

# endregion


# region Dependencies

def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
                     token: Optional[str] = Cookie(None),
                     db: Database = Depends(get_db),
                     settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    if credentials and credentials.scheme.lower() == "bearer":
        token = credentials.credentials
    if not token:
        raise Unauthenticated()

    user_id = decode_access_token(token, settings)
    try:
        user = db["user"].find_one({"_id": to_obj_id(user_id)})
    except ValidationError:
        # A token carrying a malformed id is still just a bad token
        raise Unauthenticated()
    if not user:
        raise Unauthenticated()
    return sanitize(user)


def require_role(*roles: str):
    def role_dep(current_user=Depends(get_current_user)):
        if current_user.get("role") not in roles:
            raise Forbidden(f"User role '{current_user.get('role')}' is not authorised for this route")
        return current_user
    return role_dep


def check_owner(doc: Dict[str, Any], current_user: Dict[str, Any], label: str) -> None:
    if doc.get("user_id") != current_user["id"] and current_user.get("role") != "admin":
        logger.info("Ownership check failed: user %s on %s %s", current_user["id"], label, doc.get("_id"))
        raise Forbidden(f"User id {current_user['id']} is not authorised to modify this {label}")


def owned_resource(collection: str, label: str):
    """ Fetch the document named by the `id` path parameter and check the caller may modify it """
    def owner_dep(id: str,
                  current_user=Depends(get_current_user),
                  db: Database = Depends(get_db)) -> Dict[str, Any]:
        doc = db[collection].find_one({"_id": to_obj_id(id)})
        if not doc:
            raise NotFoundError(f"{label.capitalize()} id {id} not found")
        check_owner(doc, current_user, label)
        return doc
    return owner_dep

# endregion
