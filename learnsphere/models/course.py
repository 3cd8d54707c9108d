from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, HttpUrl, TypeAdapter

_URL = TypeAdapter(HttpUrl)


class Visibility(str, Enum):
    EVERYONE = "EVERYONE"
    SIGNED_IN = "SIGNED_IN"


class AccessRule(str, Enum):
    OPEN = "OPEN"
    INVITE = "INVITE"
    PAID = "PAID"


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


def _url_or_blank(v: Optional[str]) -> Optional[str]:
    """Accept an http(s) URL or an empty string; keep the caller's spelling."""
    if v is None or v == "":
        return v
    _URL.validate_python(v)
    return v


UrlOrBlank = Annotated[Optional[str], AfterValidator(_url_or_blank)]


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    tags: list[str] = []
    image: UrlOrBlank = None
    published: bool = False
    website: UrlOrBlank = None
    visibility: Visibility = Visibility.EVERYONE
    access_rule: AccessRule = AccessRule.OPEN
    price: Optional[float] = Field(default=None, gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class CourseUpdate(BaseModel):
    """Partial update; only fields present in the request body are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    image: UrlOrBlank = None
    published: Optional[bool] = None
    website: UrlOrBlank = None
    visibility: Optional[Visibility] = None
    access_rule: Optional[AccessRule] = None
    price: Optional[float] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class EnrollRequest(BaseModel):
    confirmed: bool = False
    paid_amount: Optional[float] = Field(default=None, ge=0)


class InviteRequest(BaseModel):
    email: str = Field(min_length=1)


class InvitationReply(BaseModel):
    accept: bool


class ContactRequest(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)


BULK_ACTIONS = ("unenroll", "reset_progress")


class BulkActionRequest(BaseModel):
    # One of BULK_ACTIONS, checked by the route
    action: str
    user_ids: list[int] = Field(min_length=1)
