from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo.database import Database

from database import get_db, insert_document, sanitize, to_obj_id, update_document
from errors import NotFoundError
from query import advanced_results
from schemas import Role, User, validate_document
from security import hash_password, require_role

# Every route here is admin only
router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_role("admin"))])

user_results = advanced_results("user", User)


# Request Models
class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role = "user"


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None


def find_user(db: Database, id: str):
    user = db["user"].find_one({"_id": to_obj_id(id)})
    if not user:
        raise NotFoundError(f"User id {id} not found")
    return user


@router.get("")
def get_users(results=Depends(user_results)):
    return results


@router.post("", status_code=201)
def create_user(payload: CreateUserRequest, db: Database = Depends(get_db)):
    user_doc = validate_document(User, {
        "name": payload.name,
        "email": payload.email,
        "role": payload.role,
        "password_hash": hash_password(payload.password),
    })
    user_doc = insert_document(db, "user", user_doc)
    return {"success": True, "data": sanitize(user_doc)}


@router.get("/{id}")
def get_user(id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": sanitize(find_user(db, id))}


@router.put("/{id}")
def update_user(id: str, payload: UpdateUserRequest, db: Database = Depends(get_db)):
    user = find_user(db, id)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        return {"success": True, "data": sanitize(user)}
    updated = update_document(db, "user", user["_id"], changes)
    return {"success": True, "data": sanitize(updated)}


@router.delete("/{id}")
def delete_user(id: str, db: Database = Depends(get_db)):
    user = find_user(db, id)
    db["user"].delete_one({"_id": user["_id"]})
    return {"success": True, "data": {}}
