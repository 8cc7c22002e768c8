"""Pydantic schemas for CV documents and CV API requests.

Attribute names are snake_case; the wire format (and the JSON stored in the
``cvs.data`` column) is camelCase, so every model aliases its fields.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

TemplateType = Literal[
    "modern",
    "classic",
    "minimal",
    "professional",
    "creative",
    "academic",
    "technical",
    "executive",
    "designer",
    "startup",
    "sales",
]

_DATE_FORMATS = ("%Y-%m", "%Y", "%B %Y", "%b %Y", "%m/%d/%Y")


def parse_date(value):
    """Parse an ISO-ish date string into a naive UTC datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _check_date(value: str) -> str:
    if parse_date(value) is None:
        raise PydanticCustomError("invalid_date", "Invalid date format")
    return value


def _check_url(value: str) -> str:
    if value == "":
        return value
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise PydanticCustomError("invalid_url", "Invalid url")
    return value


DateString = Annotated[str, AfterValidator(_check_date)]
UrlString = Annotated[str, AfterValidator(_check_url)]


def _ordered(start, end):
    return parse_date(start) <= parse_date(end)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ContactInfo(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(min_length=1)
    location: str = Field(min_length=1, max_length=100)
    linkedin: Optional[UrlString] = None
    website: Optional[UrlString] = None
    github: Optional[UrlString] = None
    portfolio: Optional[UrlString] = None


class Experience(CamelModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=100)
    company: str = Field(min_length=1, max_length=100)
    location: str = Field(min_length=1, max_length=100)
    start_date: DateString
    end_date: Optional[DateString] = None
    is_present: bool
    description: Optional[str] = Field(default=None, max_length=500)
    bullets: List[Annotated[str, Field(min_length=1, max_length=300)]]
    skills: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_dates(self):
        if not self.is_present and not self.end_date:
            raise PydanticCustomError("end_date_required", "End date is required when not currently employed")
        if self.end_date and not self.is_present and not _ordered(self.start_date, self.end_date):
            raise PydanticCustomError("date_range", "Start date must be before end date")
        return self


class Education(CamelModel):
    id: Optional[str] = None
    degree: str = Field(min_length=1, max_length=100)
    institution: str = Field(min_length=1, max_length=100)
    location: Optional[str] = Field(default=None, max_length=100)
    start_date: DateString
    end_date: Optional[DateString] = None
    gpa: Optional[str] = Field(default=None, max_length=10)
    honors: Optional[str] = Field(default=None, max_length=100)
    relevant_courses: Optional[List[Annotated[str, Field(max_length=100)]]] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date and not _ordered(self.start_date, self.end_date):
            raise PydanticCustomError("date_range", "Start date must be before end date")
        return self


class Project(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    technologies: Optional[List[Annotated[str, Field(max_length=50)]]] = None
    url: Optional[UrlString] = None
    github: Optional[UrlString] = None
    start_date: Optional[DateString] = None
    end_date: Optional[DateString] = None
    highlights: Optional[List[Annotated[str, Field(max_length=200)]]] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and not _ordered(self.start_date, self.end_date):
            raise PydanticCustomError("date_range", "Start date must be before end date")
        return self


class Certification(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=100)
    issuer: str = Field(min_length=1, max_length=100)
    issue_date: DateString
    expiry_date: Optional[DateString] = None
    credential_id: Optional[str] = Field(default=None, max_length=100)
    url: Optional[UrlString] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.expiry_date and not _ordered(self.issue_date, self.expiry_date):
            raise PydanticCustomError("date_range", "Issue date must be before expiry date")
        return self


class Language(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=50)
    proficiency: Literal["beginner", "intermediate", "advanced", "native"]


class Award(CamelModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=100)
    issuer: str = Field(min_length=1, max_length=100)
    date: DateString
    description: Optional[str] = Field(default=None, max_length=300)


class Publication(CamelModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=200)
    publisher: str = Field(min_length=1, max_length=100)
    date: DateString
    url: Optional[UrlString] = None
    description: Optional[str] = Field(default=None, max_length=300)


class VolunteerWork(CamelModel):
    id: Optional[str] = None
    organization: str = Field(min_length=1, max_length=100)
    role: str = Field(min_length=1, max_length=100)
    start_date: DateString
    end_date: Optional[DateString] = None
    is_present: bool
    description: Optional[str] = Field(default=None, max_length=300)
    achievements: Optional[List[Annotated[str, Field(max_length=200)]]] = None

    @model_validator(mode="after")
    def check_dates(self):
        if not self.is_present and not self.end_date:
            raise PydanticCustomError("end_date_required", "End date is required when not currently volunteering")
        if self.end_date and not self.is_present and not _ordered(self.start_date, self.end_date):
            raise PydanticCustomError("date_range", "Start date must be before end date")
        return self


class CustomSection(CamelModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=50)
    content: Optional[str] = Field(default=None, max_length=1000)
    type: Literal["text", "list", "bullets"]
    items: Optional[List[Annotated[str, Field(max_length=200)]]] = None

    @model_validator(mode="after")
    def check_content(self):
        if self.type == "text" and not self.content:
            raise PydanticCustomError("section_content", "Content or items are required based on section type")
        if self.type in ("list", "bullets") and not self.items:
            raise PydanticCustomError("section_content", "Content or items are required based on section type")
        return self


class CVMetadata(CamelModel):
    last_modified: DateString
    version: int = Field(gt=0)
    ats_score: Optional[float] = Field(default=None, ge=0, le=100)
    keywords: Optional[List[Annotated[str, Field(max_length=50)]]] = None
    target_role: Optional[str] = Field(default=None, max_length=100)
    target_industry: Optional[str] = Field(default=None, max_length=100)


class CVData(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=100)
    template: TemplateType
    contact: ContactInfo
    summary: Optional[str] = Field(default=None, max_length=1000)
    experience: List[Experience]
    education: List[Education]
    skills: List[Annotated[str, Field(min_length=1, max_length=50)]]
    projects: List[Project]
    certifications: List[Certification]
    languages: List[Language]
    awards: List[Award]
    publications: List[Publication]
    volunteer_work: List[VolunteerWork]
    custom_sections: List[CustomSection]
    metadata: Optional[CVMetadata] = None


class PartialCVData(CamelModel):
    """Same shape as :class:`CVData` with every top-level key optional."""
    id: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    template: Optional[TemplateType] = None
    contact: Optional[ContactInfo] = None
    summary: Optional[str] = Field(default=None, max_length=1000)
    experience: Optional[List[Experience]] = None
    education: Optional[List[Education]] = None
    skills: Optional[List[Annotated[str, Field(min_length=1, max_length=50)]]] = None
    projects: Optional[List[Project]] = None
    certifications: Optional[List[Certification]] = None
    languages: Optional[List[Language]] = None
    awards: Optional[List[Award]] = None
    publications: Optional[List[Publication]] = None
    volunteer_work: Optional[List[VolunteerWork]] = None
    custom_sections: Optional[List[CustomSection]] = None
    metadata: Optional[CVMetadata] = None


# ---------- API requests ----------

class CreateCVRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    template: Optional[TemplateType] = None
    data: Optional[PartialCVData] = None


class UpdateCVRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    template: Optional[TemplateType] = None
    data: Optional[PartialCVData] = None
    is_public: Optional[bool] = None


class DuplicateCVRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CVListQuery(CamelModel):
    page: int = Field(default=1, gt=0)
    limit: int = Field(default=20, gt=0, le=100)
    search: Optional[str] = Field(default=None, max_length=100)
    template: Optional[TemplateType] = None
    sort_by: Literal["name", "createdAt", "updatedAt"] = "updatedAt"
    sort_order: Literal["asc", "desc"] = "desc"


def dump(model):
    """Serialize a schema instance to its camelCase JSON-ready dict."""
    return model.model_dump(by_alias=True, exclude_none=True)
