"""
Side effects around persistence

Handlers call these explicitly, right before or after the write they belong
to:
- bootcamp slug and geocoded location, before a bootcamp is saved;
- average cost / average rating of a bootcamp, after a course / review
  is created, updated or deleted;
- cascading removal of courses and reviews, before a bootcamp is deleted.
"""

import logging
import math
import re
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import to_obj_id
from errors import NotFoundError, ValidationError
from geocoder import Geocoder

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    s = re.sub(r"[^a-zA-Z0-9\s-]", "", name).strip().lower()
    s = re.sub(r"[\s-]+", "-", s)
    return s


def find_bootcamp(db: Database, bootcamp_id: Optional[str]) -> Dict[str, Any]:
    if not bootcamp_id:
        raise ValidationError("Please supply a bootcamp")
    bootcamp = db["bootcamp"].find_one({"_id": to_obj_id(bootcamp_id)})
    if not bootcamp:
        raise NotFoundError(f"Bootcamp id {bootcamp_id} not found")
    return bootcamp


def locate_bootcamp(data: Dict[str, Any], geocoder: Geocoder) -> Dict[str, Any]:
    """ Replace the `address` of a bootcamp with its geocoded `location` """
    address = data.pop("address", None)
    if address:
        data["location"] = geocoder.geocode(address).to_location()
    return data


# region Aggregates

def _average(db: Database, collection: str, field: str, bootcamp_id: str) -> float:
    rows = list(db[collection].aggregate([
        {"$match": {"bootcamp_id": bootcamp_id}},
        {"$group": {"_id": "$bootcamp_id", "average": {"$avg": "$" + field}}},
    ]))
    return (rows[0]["average"] or 0) if rows else 0


def _store_aggregate(db: Database, bootcamp_id: str, field: str, compute) -> Optional[float]:
    # Failures are logged and never reach the request that triggered the recompute
    try:
        value = compute()
        db["bootcamp"].update_one({"_id": ObjectId(bootcamp_id)}, {"$set": {field: value}})
    except (PyMongoError, InvalidId, TypeError):
        logger.exception("Could not recompute %s for bootcamp %s", field, bootcamp_id)
        return None
    logger.debug("Bootcamp %s %s = %s", bootcamp_id, field, value)
    return value


def update_average_cost(db: Database, bootcamp_id: str) -> Optional[float]:
    """ Mean tuition fee of the bootcamp's courses, rounded up to a multiple of 10 """
    return _store_aggregate(
        db, bootcamp_id, "average_cost",
        lambda: math.ceil(_average(db, "course", "tuition_fee", bootcamp_id) / 10) * 10,
    )


def update_average_rating(db: Database, bootcamp_id: str) -> Optional[float]:
    """ Mean rating of the bootcamp's reviews """
    return _store_aggregate(
        db, bootcamp_id, "average_rating",
        lambda: _average(db, "review", "rating", bootcamp_id),
    )

# endregion


def delete_bootcamp(db: Database, bootcamp: Dict[str, Any]) -> None:
    """ Remove a bootcamp together with its courses and reviews

    Children go first and without a recompute: their parent is about to disappear.
    """
    bootcamp_id = str(bootcamp["_id"])
    courses = db["course"].delete_many({"bootcamp_id": bootcamp_id}).deleted_count
    reviews = db["review"].delete_many({"bootcamp_id": bootcamp_id}).deleted_count
    db["bootcamp"].delete_one({"_id": bootcamp["_id"]})
    logger.info("Deleted bootcamp %s with %d courses and %d reviews", bootcamp_id, courses, reviews)
