import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db, insert_document, sanitize, to_obj_id, update_document, utcnow
from errors import NotFoundError, Unauthenticated, UpstreamError, ValidationError
from mailer import Mailer, get_mailer
from schemas import User, validate_document
from security import (
    RESET_TOKEN_TTL,
    create_access_token,
    generate_reset_token,
    get_current_user,
    hash_password,
    hash_reset_token,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# Request Models
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    # admins are never self-registered
    role: Literal["user", "publisher"] = "user"


class LoginRequest(BaseModel):
    # normalised like the stored address
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8)


class UpdateDetailsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


def token_response(user: Dict[str, Any], settings: Settings, status_code: int = 200) -> JSONResponse:
    """ Sign a token for the user; send it in the body and as an http-only cookie """
    token = create_access_token(str(user["_id"]), settings)
    response = JSONResponse(status_code=status_code, content={"success": True, "token": token})
    response.set_cookie(
        "token", token,
        max_age=settings.jwt_cookie_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
    )
    return response


@router.post("/register", status_code=201)
def register(payload: RegisterRequest,
             db: Database = Depends(get_db),
             settings: Settings = Depends(get_settings)):
    user_doc = validate_document(User, {
        "name": payload.name,
        "email": payload.email,
        "role": payload.role,
        "password_hash": hash_password(payload.password),
    })
    user_doc = insert_document(db, "user", user_doc)
    logger.info("Registered user %s as %s", user_doc["_id"], payload.role)
    return token_response(user_doc, settings, status_code=201)


@router.post("/login")
def login(payload: LoginRequest,
          db: Database = Depends(get_db),
          settings: Settings = Depends(get_settings)):
    if not payload.email or not payload.password:
        raise ValidationError("Please provide an email and a password")

    user = db["user"].find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise Unauthenticated("Invalid login")
    return token_response(user, settings)


@router.delete("/logout")
def logout():
    response = JSONResponse(content={"success": True, "data": {}})
    response.delete_cookie("token")
    return response


@router.get("/me")
def me(current_user=Depends(get_current_user)):
    return {"success": True, "data": current_user}


@router.post("/reset-password")
def forgot_password(payload: ForgotPasswordRequest,
                    request: Request,
                    db: Database = Depends(get_db),
                    mailer: Mailer = Depends(get_mailer)):
    user = db["user"].find_one({"email": payload.email})
    if not user:
        raise NotFoundError("There is no user with that email")

    token, token_hash = generate_reset_token()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {
        "reset_password_token": token_hash,
        "reset_password_expire": utcnow() + RESET_TOKEN_TTL,
    }})

    reset_url = f"{str(request.base_url).rstrip('/')}/api/v1/auth/reset-password/{token}"
    message = (
        "You are receiving this email because you (or someone else) has requested the reset of a password. "
        f"Please make a POST request to:\n\n{reset_url}"
    )
    try:
        mailer.send(email=user["email"], subject="Password reset token", message=message)
    except UpstreamError:
        # An unsent token must not stay usable
        db["user"].update_one({"_id": user["_id"]}, {"$unset": {
            "reset_password_token": "",
            "reset_password_expire": "",
        }})
        raise
    return {"success": True, "data": "Email sent"}


@router.post("/reset-password/{token}")
def reset_password(token: str,
                   payload: ResetPasswordRequest,
                   db: Database = Depends(get_db),
                   settings: Settings = Depends(get_settings)):
    user = db["user"].find_one({
        "reset_password_token": hash_reset_token(token),
        "reset_password_expire": {"$gt": utcnow()},
    })
    if not user:
        raise ValidationError("Invalid token")

    db["user"].update_one({"_id": user["_id"]}, {
        "$set": {"password_hash": hash_password(payload.password)},
        "$unset": {"reset_password_token": "", "reset_password_expire": ""},
    })
    return token_response(user, settings)


@router.put("/update-details")
def update_details(payload: UpdateDetailsRequest,
                   current_user=Depends(get_current_user),
                   db: Database = Depends(get_db)):
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        return {"success": True, "data": current_user}
    updated = update_document(db, "user", to_obj_id(current_user["id"]), changes)
    return {"success": True, "data": sanitize(updated)}


@router.put("/update-password")
def update_password(payload: UpdatePasswordRequest,
                    current_user=Depends(get_current_user),
                    db: Database = Depends(get_db),
                    settings: Settings = Depends(get_settings)):
    user = db["user"].find_one({"_id": to_obj_id(current_user["id"])})
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise Unauthenticated("Password is incorrect")

    db["user"].update_one({"_id": user["_id"]}, {"$set": {"password_hash": hash_password(payload.new_password)}})
    return token_response(user, settings)
