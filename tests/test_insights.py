from datetime import datetime, timedelta, timezone

import pytest

from insights import build_timeline, compute_stats, time_ago
import services
from services import DemoService, ResourceService

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def test_stats_on_empty_store(database):
    stats = compute_stats(database)
    assert stats.model_dump(by_alias=True) == {
        "resources": {"total": 0, "caseStudies": 0, "blogs": 0},
        "demos": {"total": 0, "new": 0, "contacted": 0, "closed": 0},
        "testimonials": {"total": 0, "visible": 0},
    }


def test_stats_counts(database, media_store, clock):
    resources = ResourceService(database, media_store, clock=clock)
    for title in ("Win one", "Win two"):
        resources.create({"type": "case-study", "title": title, "description": "d"})
    resources.create({"type": "blog", "title": "Post", "description": "d"})

    demos = DemoService(database, clock=clock)
    first = demos.create({"name": "A", "email": "a@northwind.io"})
    demos.create({"name": "B", "email": "b@northwind.io"})
    demos.update(first.id, {"status": "closed"})

    testimonials = services.TestimonialService(database, clock=clock)
    testimonials.create({"quote": "q", "name": "A"})
    testimonials.create({"quote": "q", "name": "B", "visible": False})

    stats = compute_stats(database)
    assert (stats.resources.total, stats.resources.case_studies, stats.resources.blogs) == (3, 2, 1)
    assert (stats.demos.total, stats.demos.new, stats.demos.contacted, stats.demos.closed) == (2, 1, 0, 1)
    assert (stats.testimonials.total, stats.testimonials.visible) == (2, 1)


def test_timeline_is_capped_and_newest_first(database, media_store, clock):
    resources = ResourceService(database, media_store, clock=clock)
    demos = DemoService(database, clock=clock)
    testimonials = services.TestimonialService(database, clock=clock)
    for i in range(20):
        resources.create({"type": "blog", "title": f"Post {i}", "description": "d"})
    for i in range(15):
        demos.create({"name": f"Lead {i}", "email": f"lead{i}@northwind.io"})
    for i in range(15):
        testimonials.create({"quote": "q", "name": f"Client {i}"})

    events = build_timeline(database, limit=10, now=NOW)

    assert len(events) == 10
    assert events[0].kind == "testimonial"
    assert events[0].label == "Testimonial by Client 14"
    assert events[0].timestamp == clock.now
    assert [e.timestamp for e in events] == sorted((e.timestamp for e in events), reverse=True)


def test_timeline_ties_keep_collection_order(database, media_store):
    same = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
    fixed = lambda: same  # noqa: E731
    services.TestimonialService(database, clock=fixed).create({"quote": "q", "name": "Tess"})
    DemoService(database, clock=fixed).create({"name": "Dan", "email": "dan@northwind.io"})
    ResourceService(database, media_store, clock=fixed).create({"type": "case-study", "title": "Acme", "description": "d"})

    events = build_timeline(database, now=NOW)

    assert [e.kind for e in events] == ["resource", "demo", "testimonial"]
    assert events[0].label == "New case study: Acme"
    assert events[1].label == "Demo request from Dan (dan@northwind.io)"
    assert events[0].ago == "3h ago"


def test_timeline_empty(database):
    assert build_timeline(database) == []


@pytest.mark.parametrize("delta, expected", [
    (timedelta(seconds=5), "just now"),
    (timedelta(minutes=5), "5m ago"),
    (timedelta(hours=23, minutes=59), "23h ago"),
    (timedelta(days=6), "6d ago"),
    (timedelta(days=30), "Sep 18, 2026"),
])
def test_time_ago_buckets(delta, expected):
    assert time_ago(NOW - delta, now=NOW) == expected
