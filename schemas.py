"""
Record Schemas

Pydantic models for the three stored collections. Each model corresponds to
one JSON file in DATA_DIR, named after the collection:

Example: Resource -> "resources", DemoRequest -> "demos"

Stored JSON keeps camelCase keys (imageUrl, createdAt, ...) through aliases;
Python code uses the snake_case attribute names.
"""
from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

RESOURCE_TYPES = ("case-study", "blog")
DEMO_STATUSES = ("new", "contacted", "closed")

ResourceType = Literal["case-study", "blog"]
DemoStatus = Literal["new", "contacted", "closed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# Resources (case studies and blog posts)
class Resource(StoredRecord):
    type: ResourceType
    title: str
    slug: str = Field(..., description="Unique among resources")
    description: str
    content: str = Field("", description="Markdown body")
    image_url: str = Field("", alias="imageUrl", description="Relative URL of the uploaded image")
    link: str = ""
    created_at: UtcDatetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def timestamp(self) -> datetime:
        return self.created_at


# Demo requests (lead capture)
class DemoRequest(StoredRecord):
    name: str
    email: str
    company: str = ""
    ad_spend: str = Field("", alias="adSpend")
    status: DemoStatus = Field("new", description="new|contacted|closed, no enforced order")
    notes: str = ""
    submitted_at: UtcDatetime = Field(default_factory=utcnow, alias="submittedAt")

    @property
    def timestamp(self) -> datetime:
        return self.submitted_at


# Testimonials
class Testimonial(StoredRecord):
    quote: str
    name: str
    role: str = ""
    initials: str = ""
    rating: int = Field(5, ge=1, le=5)
    visible: bool = True
    created_at: UtcDatetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def timestamp(self) -> datetime:
        return self.created_at


class ActivityEvent(BaseModel):
    kind: Literal["resource", "demo", "testimonial"]
    label: str
    timestamp: datetime
    ago: str = ""


class ResourceStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    case_studies: int = Field(0, alias="caseStudies")
    blogs: int = 0


class DemoStats(BaseModel):
    total: int = 0
    new: int = 0
    contacted: int = 0
    closed: int = 0


class TestimonialStats(BaseModel):
    total: int = 0
    visible: int = 0


class Stats(BaseModel):
    resources: ResourceStats = Field(default_factory=ResourceStats)
    demos: DemoStats = Field(default_factory=DemoStats)
    testimonials: TestimonialStats = Field(default_factory=TestimonialStats)
