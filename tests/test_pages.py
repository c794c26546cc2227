def test_home_shows_visible_testimonials(client):
    client.post("/api/testimonials", json={"quote": "They doubled our pipeline", "name": "Ana Ruiz"})
    client.post("/api/testimonials", json={"quote": "Secret praise", "name": "Bo", "visible": False})

    res = client.get("/")
    assert res.status_code == 200
    assert "They doubled our pipeline" in res.text
    assert "Secret praise" not in res.text


def test_resources_listing(client):
    client.post("/api/resources", data={"type": "blog", "title": "Creative Testing 101", "description": "How we test"})

    res = client.get("/resources")
    assert res.status_code == 200
    assert "Creative Testing 101" in res.text
    assert 'href="/resources/creative-testing-101"' in res.text


def test_resource_detail_renders_markdown(client):
    client.post("/api/resources", data={
        "type": "case-study",
        "title": "Acme",
        "description": "Scale-up",
        "content": "Revenue grew **3x** in a quarter.",
    })

    res = client.get("/resources/acme")
    assert res.status_code == 200
    assert "<strong>3x</strong>" in res.text


def test_resource_detail_without_content(client):
    client.post("/api/resources", data={"type": "blog", "title": "Soon", "description": "d"})
    assert "Content coming soon." in client.get("/resources/soon").text


def test_unknown_slug(client):
    res = client.get("/resources/missing")
    assert res.status_code == 404
    assert res.text == "Resource not found"


def test_legacy_listing_redirect(client):
    res = client.get("/resources.html", follow_redirects=False)
    assert res.status_code == 301
    assert res.headers["location"] == "/resources"
