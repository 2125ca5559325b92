"""
Database Schemas for the DevCamper API

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (Bootcamp -> "bootcamp").

We will use these collections:
- bootcamp: listed bootcamps, owned by a publisher
- course: courses offered by a bootcamp
- review: user reviews of a bootcamp (one per user and bootcamp)
- user: system users (user, publisher, admin)

Derived fields (`average_cost`, `average_rating`) are written only by
`services.py`; request bodies never carry them.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from database import utcnow
from errors import ValidationError

Role = Literal["user", "publisher", "admin"]
Career = Literal["Web Development", "Mobile Development", "UI/UX", "Data Science", "Business", "Other"]
Skill = Literal["beginner", "intermediate", "advanced"]

URL_PATTERN = r"^https?://[^\s/$.?#].[^\s]*$"


class Document(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    created_at: datetime = Field(default_factory=utcnow)


class Location(BaseModel):
    """ GeoJSON point plus the locality fields returned by the geocoder """
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    formatted_address: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None


class Bootcamp(Document):
    user_id: str = Field(..., description="Reference to user _id (publisher)")
    name: str = Field(..., min_length=1, max_length=50)
    slug: str
    description: str = Field(..., min_length=1, max_length=500)
    website: Optional[str] = Field(None, pattern=URL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    location: Optional[Location] = None
    careers: List[Career] = Field(..., min_length=1)
    average_rating: Optional[float] = Field(None, ge=0, le=10)
    average_cost: Optional[float] = None
    photo: str = "no-photo.jpg"
    housing: bool = False
    job_assistance: bool = False
    job_guarantee: bool = False
    accept_gi: bool = False

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower() if v else v


class Course(Document):
    user_id: str = Field(..., description="Reference to user _id (publisher)")
    bootcamp_id: str = Field(..., description="Reference to bootcamp _id")
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    weeks: str = Field(..., min_length=1)
    tuition_fee: float = Field(..., ge=0)
    minimum_skill: Skill
    scholarship_available: bool = False


class Review(Document):
    user_id: str = Field(...)
    bootcamp_id: str = Field(...)
    title: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=10)


class User(Document):
    name: str = Field(..., min_length=1)
    email: EmailStr
    role: Role = Field("user")
    password_hash: str = Field(..., description="BCrypt hash of password")
    reset_password_token: Optional[str] = None
    reset_password_expire: Optional[datetime] = None


def error_messages(errors: List[Dict[str, Any]]) -> List[str]:
    """ Flatten pydantic errors into `field: message` strings """
    messages = []
    for err in errors:
        loc = ".".join(str(part) for part in err["loc"] if part != "body")
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return messages


def validate_document(schema: Type[Document], data: Dict[str, Any]) -> Dict[str, Any]:
    """ Validate a whole document, reporting every failed constraint at once """
    try:
        return schema.model_validate(data).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(error_messages(e.errors()))
