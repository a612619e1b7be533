import io
import uuid

import pytest
from PIL import Image

from skatebounty.services import storage

def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()

@pytest.mark.asyncio
async def test_create_and_list_spots(ac, user):
    ident, hdrs = user
    r = await ac.post("/spots", headers=hdrs, json={"title": " Southbank ", "lat": 51.506, "lng": -0.116})
    assert r.status_code == 201, r.text
    s = r.json()
    assert s["title"] == "Southbank"
    assert s["owner_id"] == str(ident.user_id)
    listed = (await ac.get("/spots")).json()
    assert [x["id"] for x in listed] == [s["id"]]

@pytest.mark.asyncio
async def test_spot_coordinates_must_pair(ac, user):
    _, hdrs = user
    r = await ac.post("/spots", headers=hdrs, json={"title": "Half", "lat": 10.0})
    assert r.status_code == 422
    assert r.json()["field"] == "lng"
    r = await ac.post("/spots", headers=hdrs, json={"title": "Far", "lat": 95.0, "lng": 0.0})
    assert r.status_code == 422

@pytest.mark.asyncio
async def test_spot_requires_title_and_sign_in(ac, user):
    _, hdrs = user
    assert (await ac.post("/spots", headers=hdrs, json={"title": "  "})).status_code == 422
    assert (await ac.post("/spots", json={"title": "Anon"})).status_code == 401

@pytest.mark.asyncio
async def test_spot_detail_lists_bounties(ac, user):
    _, hdrs = user
    spot = (await ac.post("/spots", headers=hdrs, json={"title": "MACBA"})).json()
    await ac.post("/bounties", headers=hdrs, json={"trick": "nollie flip", "spot_id": spot["id"]})
    await ac.post("/bounties", headers=hdrs, json={"trick": "elsewhere"})
    d = (await ac.get(f"/spots/{spot['id']}")).json()
    assert d["spot"]["title"] == "MACBA"
    assert [b["trick"] for b in d["bounties"]] == ["nollie flip"]
    assert (await ac.get(f"/spots/{uuid.uuid4()}")).status_code == 404

@pytest.mark.asyncio
async def test_upload_spot_image(ac, user, monkeypatch):
    ident, hdrs = user
    stored = {}

    def fake_upload(key, data, content_type):
        stored.update(key=key, size=len(data), content_type=content_type)
        return storage.public_url(key)

    monkeypatch.setattr(storage, "upload", fake_upload)
    r = await ac.post("/spots/images", headers=hdrs, files={"image": ("spot.png", _png(), "image/png")})
    assert r.status_code == 201, r.text
    assert stored["content_type"] == "image/png"
    assert stored["key"].startswith(f"user_{ident.user_id}/") and stored["key"].endswith(".png")
    assert r.json()["url"].endswith(stored["key"])

@pytest.mark.asyncio
async def test_upload_rejects_non_image(ac, user, monkeypatch):
    _, hdrs = user
    monkeypatch.setattr(storage, "upload", lambda *a: pytest.fail("should not upload"))
    r = await ac.post("/spots/images", headers=hdrs, files={"image": ("x.png", b"not an image", "image/png")})
    assert r.status_code == 422
    assert r.json()["field"] == "image"

@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ConnectionError("minio unreachable"), OSError("broken pipe")])
async def test_upload_store_failure_is_503(ac, user, monkeypatch, error):
    _, hdrs = user

    def failing_upload(key, data, content_type):
        raise error

    monkeypatch.setattr(storage, "upload", failing_upload)
    r = await ac.post("/spots/images", headers=hdrs, files={"image": ("spot.png", _png(), "image/png")})
    assert r.status_code == 503
    assert r.json()["field"] == "image"
