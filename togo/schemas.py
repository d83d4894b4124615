"""
Request payload schemas.

Each model validates one JSON (or multipart) payload accepted by the API.
Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


SQLITE_MAX_INT = 2**63 - 1

# sqlite3 raises OverflowError for Python ints outside a signed 64-bit range
DbInt = Annotated[int, Field(ge=-SQLITE_MAX_INT - 1, le=SQLITE_MAX_INT)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# -------------------- Identity --------------------

def _check_username(value):
    if not value.replace("_", "").replace(".", "").isalnum():
        raise ValueError("Username can only contain letters, numbers, dots and underscores")
    return value


Username = Annotated[str, Field(min_length=3, max_length=50), AfterValidator(_check_username)]


class RegisterRequest(ApiModel):
    username: Username
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=120)


class LoginRequest(ApiModel):
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(ApiModel):
    username: Optional[Username] = None
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=120)


class ProfilePictureUpdate(ApiModel):
    image_url: str = Field(..., min_length=1)


# -------------------- Catalog --------------------

class PlaceTypeCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=80)


class PlaceTypeUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=80)


def _check_rating(value):
    if value is None:
        return value
    if value < 0 or value > 5:
        raise ValueError("Rating must be between 0 and 5")
    if value * 2 != int(value * 2):
        raise ValueError("Rating must be a multiple of 0.5")
    return value


def _check_tags(value):
    if value is None:
        return value
    cleaned = []
    for tag in value:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


Rating = Annotated[Optional[float], AfterValidator(_check_rating)]
Tags = Annotated[List[str], AfterValidator(_check_tags)]


class PlaceCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    type_id: DbInt
    state_id: DbInt
    state_name: str = Field(..., min_length=1)
    city_id: DbInt
    city_name: str = Field(..., min_length=1)
    address: Optional[str] = None
    description: Optional[str] = None
    instagram_profile: Optional[str] = None
    has_rodizio: bool = False
    pet_friendly: bool = False
    recommend_to_friends: bool = False
    is_visited: bool = False
    rating: Rating = None
    main_image: Optional[str] = None
    thumbnail_image: Optional[str] = None
    itinerary_file: Optional[str] = None
    tags: Tags = Field(default_factory=list)


class PlaceUpdate(ApiModel):
    """Partial update: only fields present in the payload are written."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    type_id: Optional[DbInt] = None
    state_id: Optional[DbInt] = None
    state_name: Optional[str] = Field(None, min_length=1)
    city_id: Optional[DbInt] = None
    city_name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    description: Optional[str] = None
    instagram_profile: Optional[str] = None
    has_rodizio: Optional[bool] = None
    pet_friendly: Optional[bool] = None
    recommend_to_friends: Optional[bool] = None
    is_visited: Optional[bool] = None
    rating: Rating = None
    main_image: Optional[str] = None
    thumbnail_image: Optional[str] = None
    itinerary_file: Optional[str] = None
    tags: Optional[Tags] = None

    @field_validator(
        "name",
        "type_id",
        "state_id",
        "state_name",
        "city_id",
        "city_name",
        "has_rodizio",
        "pet_friendly",
        "recommend_to_friends",
        "is_visited",
    )
    @classmethod
    def not_null(cls, value):
        # these columns are NOT NULL; leave the field out to keep the stored value
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class PlaceFilters(ApiModel):
    type_ids: List[DbInt] = Field(default_factory=list)
    state_id: Optional[DbInt] = None
    city_id: Optional[DbInt] = None
    has_rodizio: Optional[bool] = None
    is_visited: Optional[bool] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    search: Optional[str] = None
    created_by: Optional[DbInt] = None


class PlaceImageUpload(ApiModel):
    image_blob: str = Field(..., min_length=1)


# -------------------- Social --------------------

class FriendRequest(ApiModel):
    friend_id: DbInt


# -------------------- Carousel --------------------

class CarouselImageCreate(ApiModel):
    image_url: str = Field(..., min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    display_order: DbInt = 0
    is_active: bool = True


class CarouselImageUpdate(ApiModel):
    image_url: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    display_order: Optional[DbInt] = None
    is_active: Optional[bool] = None


# -------------------- Password reset --------------------

class PasswordResetRequest(ApiModel):
    email: EmailStr


class PasswordResetVerify(ApiModel):
    code: str = Field(..., pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=6)
