import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Path, UploadFile
from pydantic import BaseModel, ConfigDict
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db, insert_document, sanitize, to_obj_id, update_document
from errors import NotFoundError, ValidationError
from geocoder import Geocoder, get_geocoder
from query import Populate, advanced_results
from schemas import Bootcamp, Career, validate_document
from security import owned_resource, require_role
from services import delete_bootcamp, locate_bootcamp, slugify
from uploads import FileStore, get_file_store

router = APIRouter(prefix="/bootcamps", tags=["bootcamps"])

# Mean radius of the Earth, in miles
EARTH_RADIUS_MILES = 3963.2

bootcamp_results = advanced_results(
    "bootcamp", Bootcamp,
    populate=[Populate("courses", "course", foreign_field="bootcamp_id")],
)
owned_bootcamp = owned_resource("bootcamp", "bootcamp")
publisher_or_admin = require_role("publisher", "admin")


# Request Models
class BootcampIn(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str
    description: str
    address: str
    careers: List[Career]
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False


class BootcampUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    careers: Optional[List[Career]] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    housing: Optional[bool] = None
    job_assistance: Optional[bool] = None
    job_guarantee: Optional[bool] = None
    accept_gi: Optional[bool] = None


@router.get("")
def get_bootcamps(results=Depends(bootcamp_results)):
    return results


@router.post("", status_code=201)
def create_bootcamp(payload: BootcampIn,
                    current_user=Depends(publisher_or_admin),
                    db: Database = Depends(get_db),
                    geocoder: Geocoder = Depends(get_geocoder)):
    # A publisher may list a single bootcamp
    if current_user["role"] != "admin" and db["bootcamp"].find_one({"user_id": current_user["id"]}):
        raise ValidationError(f"The user with id {current_user['id']} has already published a bootcamp")

    data = payload.model_dump(exclude_none=True)
    data.update(user_id=current_user["id"], slug=slugify(payload.name))
    doc = validate_document(Bootcamp, locate_bootcamp(data, geocoder))
    doc = insert_document(db, "bootcamp", doc)
    return {"success": True, "data": sanitize(doc)}


@router.get("/radius/{zipcode}/{distance}")
def get_bootcamps_in_radius(zipcode: str,
                            distance: float = Path(..., gt=0, description="Miles"),
                            db: Database = Depends(get_db),
                            geocoder: Geocoder = Depends(get_geocoder)):
    loc = geocoder.geocode(zipcode)
    radius = distance / EARTH_RADIUS_MILES
    docs = db["bootcamp"].find({
        "location": {"$geoWithin": {"$centerSphere": [[loc.longitude, loc.latitude], radius]}},
    })
    data = [sanitize(d) for d in docs]
    return {"success": True, "count": len(data), "data": data}


@router.get("/{id}")
def get_bootcamp(id: str, db: Database = Depends(get_db)):
    doc = db["bootcamp"].find_one({"_id": to_obj_id(id)})
    if not doc:
        raise NotFoundError(f"Bootcamp id {id} not found")
    return {"success": True, "data": sanitize(doc)}


@router.put("/{id}", dependencies=[Depends(publisher_or_admin)])
def update_bootcamp(payload: BootcampUpdate,
                    bootcamp=Depends(owned_bootcamp),
                    db: Database = Depends(get_db),
                    geocoder: Geocoder = Depends(get_geocoder)):
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        changes["slug"] = slugify(changes["name"])
    if "address" in changes:
        locate_bootcamp(changes, geocoder)

    current = {k: v for k, v in bootcamp.items() if k != "_id"}
    doc = validate_document(Bootcamp, {**current, **changes})
    updated = update_document(db, "bootcamp", bootcamp["_id"], {k: doc[k] for k in changes})
    return {"success": True, "data": sanitize(updated)}


@router.delete("/{id}", dependencies=[Depends(publisher_or_admin)])
def remove_bootcamp(bootcamp=Depends(owned_bootcamp), db: Database = Depends(get_db)):
    delete_bootcamp(db, bootcamp)
    return {"success": True, "data": {}}


@router.put("/{id}/photo", dependencies=[Depends(publisher_or_admin)])
def upload_bootcamp_photo(file: UploadFile = File(...),
                          bootcamp=Depends(owned_bootcamp),
                          db: Database = Depends(get_db),
                          store: FileStore = Depends(get_file_store),
                          settings: Settings = Depends(get_settings)):
    if not (file.content_type or "").startswith("image/"):
        raise ValidationError("Please upload an image file")

    data = file.file.read(settings.max_file_upload + 1)
    if len(data) > settings.max_file_upload:
        raise ValidationError(f"Please upload an image no larger than {settings.max_file_upload} bytes")

    ext = os.path.splitext(file.filename or "")[1]
    name = store.save(f"photo_{bootcamp['_id']}{ext}", data)
    db["bootcamp"].update_one({"_id": bootcamp["_id"]}, {"$set": {"photo": name}})
    return {"success": True, "data": name}
