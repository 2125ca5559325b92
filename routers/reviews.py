from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pymongo.database import Database

from database import get_db, insert_document, sanitize, to_obj_id, update_document
from errors import NotFoundError
from query import Populate, advanced_results, expand
from schemas import Review, validate_document
from security import owned_resource, require_role
from services import find_bootcamp, update_average_rating

router = APIRouter(tags=["reviews"])

REVIEW_POPULATE = [
    Populate("bootcamp", "bootcamp", local_field="bootcamp_id", select=("name", "description")),
    Populate("user", "user", local_field="user_id", select=("name",)),
]

review_results = advanced_results("review", Review, populate=REVIEW_POPULATE, scope={"bootcamp_id": "bootcamp_id"})
owned_review = owned_resource("review", "review")
user_or_admin = require_role("user", "admin")


# Request Models
class ReviewIn(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str
    text: str
    rating: int
    bootcamp_id: Optional[str] = None


class ReviewUpdate(BaseModel):
    """ The reviewed bootcamp is fixed once the review exists """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = None
    text: Optional[str] = None
    rating: Optional[int] = None


def _create_review(bootcamp_id: Optional[str], payload: ReviewIn, current_user, db: Database):
    bootcamp = find_bootcamp(db, bootcamp_id)

    data = payload.model_dump(exclude={"bootcamp_id"})
    data.update(bootcamp_id=str(bootcamp["_id"]), user_id=current_user["id"])
    # A second review of the same bootcamp by the same user trips the unique index
    doc = insert_document(db, "review", validate_document(Review, data))
    update_average_rating(db, doc["bootcamp_id"])
    return {"success": True, "data": sanitize(doc)}


@router.get("/reviews")
def get_reviews(results=Depends(review_results)):
    return results


@router.get("/bootcamps/{bootcamp_id}/reviews")
def get_bootcamp_reviews(results=Depends(review_results)):
    return results


@router.post("/reviews", status_code=201)
def create_review(payload: ReviewIn,
                  current_user=Depends(user_or_admin),
                  db: Database = Depends(get_db)):
    return _create_review(payload.bootcamp_id, payload, current_user, db)


@router.post("/bootcamps/{bootcamp_id}/reviews", status_code=201)
def create_bootcamp_review(bootcamp_id: str,
                           payload: ReviewIn,
                           current_user=Depends(user_or_admin),
                           db: Database = Depends(get_db)):
    return _create_review(bootcamp_id, payload, current_user, db)


@router.get("/reviews/{id}")
def get_review(id: str, db: Database = Depends(get_db)):
    doc = db["review"].find_one({"_id": to_obj_id(id)})
    if not doc:
        raise NotFoundError(f"Review id {id} not found")
    expand(db, [doc], REVIEW_POPULATE)
    return {"success": True, "data": sanitize(doc)}


@router.put("/reviews/{id}")
def update_review(payload: ReviewUpdate,
                  review=Depends(owned_review),
                  db: Database = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    current = {k: v for k, v in review.items() if k != "_id"}
    doc = validate_document(Review, {**current, **changes})
    updated = update_document(db, "review", review["_id"], {k: doc[k] for k in changes})
    if "rating" in changes:
        update_average_rating(db, updated["bootcamp_id"])
    return {"success": True, "data": sanitize(updated)}


@router.delete("/reviews/{id}")
def delete_review(review=Depends(owned_review), db: Database = Depends(get_db)):
    db["review"].delete_one({"_id": review["_id"]})
    update_average_rating(db, review["bootcamp_id"])
    return {"success": True, "data": {}}
