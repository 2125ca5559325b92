from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pymongo.database import Database

from database import get_db, insert_document, sanitize, to_obj_id, update_document
from errors import NotFoundError
from query import Populate, advanced_results, expand
from schemas import Course, Skill, validate_document
from security import check_owner, owned_resource, require_role
from services import find_bootcamp, update_average_cost

router = APIRouter(tags=["courses"])

COURSE_POPULATE = [Populate("bootcamp", "bootcamp", local_field="bootcamp_id", select=("name", "description"))]

course_results = advanced_results("course", Course, populate=COURSE_POPULATE, scope={"bootcamp_id": "bootcamp_id"})
owned_course = owned_resource("course", "course")
publisher_or_admin = require_role("publisher", "admin")


# Request Models
class CourseIn(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str
    description: str
    weeks: str
    tuition_fee: float
    minimum_skill: Skill
    scholarship_available: bool = False
    bootcamp_id: Optional[str] = None


class CourseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = None
    description: Optional[str] = None
    weeks: Optional[str] = None
    tuition_fee: Optional[float] = None
    minimum_skill: Optional[Skill] = None
    scholarship_available: Optional[bool] = None
    bootcamp_id: Optional[str] = None


def _create_course(bootcamp_id: Optional[str], payload: CourseIn, current_user, db: Database):
    # Courses are added by whoever owns the bootcamp
    bootcamp = find_bootcamp(db, bootcamp_id)
    check_owner(bootcamp, current_user, "bootcamp")

    data = payload.model_dump(exclude={"bootcamp_id"})
    data.update(bootcamp_id=str(bootcamp["_id"]), user_id=current_user["id"])
    doc = insert_document(db, "course", validate_document(Course, data))
    update_average_cost(db, doc["bootcamp_id"])
    return {"success": True, "data": sanitize(doc)}


@router.get("/courses")
def get_courses(results=Depends(course_results)):
    return results


@router.get("/bootcamps/{bootcamp_id}/courses")
def get_bootcamp_courses(results=Depends(course_results)):
    return results


@router.post("/courses", status_code=201)
def create_course(payload: CourseIn,
                  current_user=Depends(publisher_or_admin),
                  db: Database = Depends(get_db)):
    return _create_course(payload.bootcamp_id, payload, current_user, db)


@router.post("/bootcamps/{bootcamp_id}/courses", status_code=201)
def create_bootcamp_course(bootcamp_id: str,
                           payload: CourseIn,
                           current_user=Depends(publisher_or_admin),
                           db: Database = Depends(get_db)):
    return _create_course(bootcamp_id, payload, current_user, db)


@router.get("/courses/{id}")
def get_course(id: str, db: Database = Depends(get_db)):
    doc = db["course"].find_one({"_id": to_obj_id(id)})
    if not doc:
        raise NotFoundError(f"Course id {id} not found")
    expand(db, [doc], COURSE_POPULATE)
    return {"success": True, "data": sanitize(doc)}


@router.put("/courses/{id}")
def update_course(payload: CourseUpdate,
                  current_user=Depends(publisher_or_admin),
                  course=Depends(owned_course),
                  db: Database = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    previous_bootcamp_id = course["bootcamp_id"]

    # Moving a course needs ownership of the destination too
    if "bootcamp_id" in changes:
        target = find_bootcamp(db, changes["bootcamp_id"])
        changes["bootcamp_id"] = str(target["_id"])
        if changes["bootcamp_id"] != previous_bootcamp_id:
            check_owner(target, current_user, "bootcamp")

    current = {k: v for k, v in course.items() if k != "_id"}
    doc = validate_document(Course, {**current, **changes})
    updated = update_document(db, "course", course["_id"], {k: doc[k] for k in changes})

    update_average_cost(db, updated["bootcamp_id"])
    if updated["bootcamp_id"] != previous_bootcamp_id:
        update_average_cost(db, previous_bootcamp_id)
    return {"success": True, "data": sanitize(updated)}


@router.delete("/courses/{id}", dependencies=[Depends(publisher_or_admin)])
def delete_course(course=Depends(owned_course),
                  db: Database = Depends(get_db)):
    db["course"].delete_one({"_id": course["_id"]})
    update_average_cost(db, course["bootcamp_id"])
    return {"success": True, "data": {}}
