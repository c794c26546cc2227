"""
CRUD services for resources, demo requests and testimonials.

Services validate input, apply defaults and talk only to the JSON store
(plus the media store for resource images). Input arrives as a dict holding
only the fields the caller sent; a key present with an empty string is an
explicit value, a missing key leaves the stored field untouched.
"""
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as SchemaError

from database import JsonDatabase, Record, create_document, get_documents
from errors import ContentError, NotFoundError, ValidationError
from media import ImageUpload, MediaStore
from schemas import (
    DEMO_STATUSES,
    RESOURCE_TYPES,
    DemoRequest,
    Resource,
    StoredRecord,
    Testimonial,
    utcnow,
)
from slugs import unique_slug

logger = logging.getLogger(__name__)


def _missing(data: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    return [f for f in fields if not str(data.get(f) or "").strip()]


def _text(value: Any) -> str:
    return str(value).strip()


def _optional_text(data: Dict[str, Any], field: str) -> Optional[str]:
    """The value sent for an optional text field, or None when it was not sent."""
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text", [field])
    return value


def _build(model: Type[StoredRecord], fields: Dict[str, Any]):
    try:
        return model.model_validate(fields)
    except SchemaError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err["loc"])
        raise ValidationError(f"{field}: {err['msg']}", [field]) from None


def _initials(name: str) -> str:
    return "".join(word[0] for word in name.split()).upper()


def parse_records(model: Type[StoredRecord], docs: Iterable[Record]) -> list:
    """Validate stored documents, skipping (and logging) the ones that do not fit."""
    records = []
    for doc in docs:
        try:
            records.append(model.model_validate(doc))
        except SchemaError as e:
            logger.warning(f"Skipping invalid {model.__name__} record {doc.get('id')}: {e.error_count()} errors")
    return records


def _rating(value: Any) -> int:
    if value is None or value == "":
        return 5
    try:
        rating = int(value)
    except (TypeError, ValueError):
        rating = 0
    if isinstance(value, bool) or not 1 <= rating <= 5:
        raise ValidationError("rating must be a whole number from 1 to 5", ["rating"])
    return rating


class CollectionService:
    collection: str = ""
    model: Type[StoredRecord] = StoredRecord
    search_fields: Tuple[str, ...] = ()

    def __init__(self, database: JsonDatabase, clock: Callable = utcnow):
        self.db = database
        self.clock = clock

    @property
    def store(self):
        return self.db[self.collection]

    def _parse(self, docs: Iterable[Record]) -> list:
        return parse_records(self.model, docs)

    @staticmethod
    def _index_of(items: List[Record], record_id: str) -> int:
        for i, item in enumerate(items):
            if item.get("id") == record_id:
                return i
        raise NotFoundError()

    def _query(self, filter_dict: Optional[Record] = None, q: Optional[str] = None) -> list:
        records = self._parse(get_documents(self.db, self.collection, filter_dict))
        if q:
            needle = q.lower()
            records = [r for r in records if any(needle in str(getattr(r, f) or "").lower() for f in self.search_fields)]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def all(self) -> list:
        """Every record, newest first."""
        return self._query()

    def get(self, record_id: str):
        found = self._parse(d for d in self.store.load() if d.get("id") == record_id)
        if not found:
            raise NotFoundError()
        return found[0]

    def _modify(self, record_id: str, build_changes: Callable[[Any, List[Record]], Dict[str, Any]]):
        with self.store.mutate() as items:
            idx = self._index_of(items, record_id)
            try:
                record = self.model.model_validate(items[idx])
            except SchemaError:
                raise NotFoundError() from None
            updated = _build(self.model, {**record.model_dump(), **build_changes(record, items)})
            items[idx] = updated.to_document()
        logger.info(f"Updated {self.collection} record {record_id}")
        return updated

    def delete(self, record_id: str) -> None:
        with self.store.mutate() as items:
            idx = self._index_of(items, record_id)
            self._before_delete(items[idx])
            del items[idx]
        logger.info(f"Deleted {self.collection} record {record_id}")

    def _before_delete(self, doc: Record) -> None:
        pass


class ResourceService(CollectionService):
    collection = "resources"
    model = Resource
    search_fields = ("title", "description")

    def __init__(self, database: JsonDatabase, media: MediaStore, clock: Callable = utcnow):
        super().__init__(database, clock)
        self.media = media

    @staticmethod
    def _resource_type(value: Any) -> str:
        rtype = _text(value)
        if rtype not in RESOURCE_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(RESOURCE_TYPES)}", ["type"])
        return rtype

    def list(self, type: Optional[str] = None, q: Optional[str] = None) -> List[Resource]:
        flt = {"type": type} if type and type != "all" else None
        return self._query(flt, q)

    def get_by_slug(self, slug: str) -> Resource:
        found = self._parse(d for d in self.store.load() if d.get("slug") == slug)
        if not found:
            raise NotFoundError("Resource not found")
        return found[0]

    def create(self, data: Dict[str, Any], image: Optional[ImageUpload] = None) -> Resource:
        missing = _missing(data, ("type", "title", "description"))
        if missing:
            raise ValidationError.missing(missing)
        rtype = self._resource_type(data["type"])
        title = _text(data["title"])
        content = _optional_text(data, "content") or ""
        link = _optional_text(data, "link") or ""

        image_url = self.media.save(image) if image else ""
        try:
            with self.store.mutate() as items:
                resource = _build(Resource, {
                    "id": str(uuid.uuid4()),
                    "type": rtype,
                    "title": title,
                    "slug": unique_slug(title, items),
                    "description": _text(data["description"]),
                    "content": content,
                    "image_url": image_url,
                    "link": link,
                    "created_at": self.clock(),
                })
                items.append(resource.to_document())
        except ContentError:
            self.media.release(image_url)
            raise
        logger.info(f"Created resource {resource.id} ({resource.slug})")
        return resource

    def update(self, resource_id: str, data: Dict[str, Any], image: Optional[ImageUpload] = None) -> Resource:
        rtype = self._resource_type(data["type"]) if data.get("type") else None
        title = _text(data.get("title") or "")
        description = _text(data.get("description") or "")
        texts = {field: _optional_text(data, field) for field in ("content", "link")}
        replaced: List[str] = []

        new_url = self.media.save(image) if image else None

        def changes(resource: Resource, items: List[Record]) -> Dict[str, Any]:
            out: Dict[str, Any] = {}
            if rtype:
                out["type"] = rtype
            # Blank title or description leaves the stored value alone.
            if title:
                out["title"] = title
                out["slug"] = unique_slug(title, items, exclude_id=resource.id)
            if description:
                out["description"] = description
            out.update({field: value for field, value in texts.items() if value is not None})
            if new_url:
                replaced.append(resource.image_url)
                out["image_url"] = new_url
            return out

        try:
            updated = self._modify(resource_id, changes)
        except ContentError:
            if new_url:
                self.media.release(new_url)
            raise
        for old_url in replaced:
            if old_url:
                self.media.release(old_url)
        return updated

    def _before_delete(self, doc: Record) -> None:
        if doc.get("imageUrl"):
            self.media.release(doc["imageUrl"])


class DemoService(CollectionService):
    collection = "demos"
    model = DemoRequest
    search_fields = ("name", "email", "company")

    def list(self, status: Optional[str] = None, q: Optional[str] = None) -> List[DemoRequest]:
        flt = {"status": status} if status and status != "all" else None
        return self._query(flt, q)

    def create(self, data: Dict[str, Any]) -> DemoRequest:
        missing = _missing(data, ("name", "email"))
        if missing:
            raise ValidationError.missing(missing)
        email = _text(data["email"])
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("email is not a valid address", ["email"]) from None

        demo = _build(DemoRequest, {
            "id": str(uuid.uuid4()),
            "name": _text(data["name"]),
            "email": email,
            "company": _optional_text(data, "company") or "",
            "ad_spend": _optional_text(data, "ad_spend") or "",
            "status": "new",
            "notes": "",
            "submitted_at": self.clock(),
        })
        create_document(self.db, self.collection, demo.to_document())
        logger.info(f"New demo request {demo.id} from {demo.email}")
        return demo

    def update(self, demo_id: str, data: Dict[str, Any]) -> DemoRequest:
        status = data.get("status")
        notes = _optional_text(data, "notes")
        if status and status not in DEMO_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(DEMO_STATUSES)}", ["status"])

        def changes(demo: DemoRequest, items: List[Record]) -> Dict[str, Any]:
            out: Dict[str, Any] = {}
            # Any status may follow any other.
            if status:
                out["status"] = status
            if notes is not None:
                out["notes"] = notes
            return out

        return self._modify(demo_id, changes)


class TestimonialService(CollectionService):
    collection = "testimonials"
    model = Testimonial
    search_fields = ("quote", "name")

    def list(self, visible: Optional[bool] = None, q: Optional[str] = None) -> List[Testimonial]:
        flt = {"visible": visible} if visible is not None else None
        return self._query(flt, q)

    def create(self, data: Dict[str, Any]) -> Testimonial:
        missing = _missing(data, ("quote", "name"))
        if missing:
            raise ValidationError.missing(missing)
        name = _text(data["name"])

        testimonial = _build(Testimonial, {
            "id": str(uuid.uuid4()),
            "quote": _text(data["quote"]),
            "name": name,
            "role": _optional_text(data, "role") or "",
            "initials": _text(data.get("initials") or "") or _initials(name),
            "rating": _rating(data.get("rating")),
            "visible": data.get("visible") is not False,
            "created_at": self.clock(),
        })
        create_document(self.db, self.collection, testimonial.to_document())
        logger.info(f"Created testimonial {testimonial.id} by {testimonial.name}")
        return testimonial

    def update(self, testimonial_id: str, data: Dict[str, Any]) -> Testimonial:
        rating = _rating(data["rating"]) if data.get("rating") not in (None, "") else None
        role = _optional_text(data, "role")

        def changes(testimonial: Testimonial, items: List[Record]) -> Dict[str, Any]:
            out: Dict[str, Any] = {}
            for field in ("quote", "name", "initials"):
                value = _text(data.get(field) or "")
                if value:
                    out[field] = value
            if role is not None:
                out["role"] = role
            if rating is not None:
                out["rating"] = rating
            if data.get("visible") is not None:
                out["visible"] = bool(data["visible"])
            return out

        return self._modify(testimonial_id, changes)
