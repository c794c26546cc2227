"""
Dashboard read models: aggregate counts and the recent activity feed.

Both are recomputed from the stored collections on every call.
"""
from datetime import datetime, timezone
from typing import List, Optional

from database import JsonDatabase
from schemas import (
    ActivityEvent,
    DemoRequest,
    DemoStats,
    Resource,
    ResourceStats,
    Stats,
    Testimonial,
    TestimonialStats,
)
from services import parse_records

RESOURCE_LABELS = {"case-study": "case study", "blog": "blog post"}


def compute_stats(database: JsonDatabase) -> Stats:
    resources = database["resources"].load()
    demos = database["demos"].load()
    testimonials = database["testimonials"].load()

    def count(docs, key, value):
        return sum(1 for d in docs if d.get(key) == value)

    return Stats(
        resources=ResourceStats(
            total=len(resources),
            case_studies=count(resources, "type", "case-study"),
            blogs=count(resources, "type", "blog"),
        ),
        demos=DemoStats(
            total=len(demos),
            new=count(demos, "status", "new"),
            contacted=count(demos, "status", "contacted"),
            closed=count(demos, "status", "closed"),
        ),
        testimonials=TestimonialStats(
            total=len(testimonials),
            visible=count(testimonials, "visible", True),
        ),
    )


def format_date(ts: datetime) -> str:
    return f"{ts:%b} {ts.day}, {ts.year}"


def time_ago(ts: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    secs = int((now - ts).total_seconds())
    if secs < 60:
        return "just now"
    if secs < 3600:
        return f"{secs // 60}m ago"
    if secs < 86400:
        return f"{secs // 3600}h ago"
    if secs < 604800:
        return f"{secs // 86400}d ago"
    return format_date(ts)


def build_timeline(database: JsonDatabase, limit: int = 10, now: Optional[datetime] = None) -> List[ActivityEvent]:
    """Newest events across all three collections, at most `limit` of them.

    Equal timestamps keep the order resources, demos, testimonials.
    """
    events = []
    for r in parse_records(Resource, database["resources"].load()):
        kind = RESOURCE_LABELS.get(r.type, r.type)
        events.append(ActivityEvent(kind="resource", label=f"New {kind}: {r.title}", timestamp=r.created_at))
    for d in parse_records(DemoRequest, database["demos"].load()):
        events.append(ActivityEvent(kind="demo", label=f"Demo request from {d.name} ({d.email})", timestamp=d.submitted_at))
    for t in parse_records(Testimonial, database["testimonials"].load()):
        events.append(ActivityEvent(kind="testimonial", label=f"Testimonial by {t.name}", timestamp=t.created_at))

    events.sort(key=lambda e: e.timestamp, reverse=True)
    events = events[: max(limit, 0)]
    for e in events:
        e.ago = time_ago(e.timestamp, now)
    return events
