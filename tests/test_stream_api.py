"""Tests for GET /api/videos/stream/{stored_name}."""

import os

PAYLOAD = os.urandom(5000)


async def _stored(upload, **kwargs) -> dict:
    resp = await upload(PAYLOAD, **kwargs)
    assert resp.status_code == 200
    return resp.json()["video"]


async def test_full_content_without_range(client, upload):
    video = await _stored(upload)
    resp = await client.get(f"/api/videos/stream/{video['stored_name']}")
    assert resp.status_code == 200
    assert resp.headers["content-length"] == str(len(PAYLOAD))
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.headers["content-type"].startswith("video/mp4")
    assert "content-range" not in resp.headers
    assert resp.content == PAYLOAD


async def test_first_hundred_bytes(client, upload):
    video = await _stored(upload)
    resp = await client.get(f"/api/videos/stream/{video['stored_name']}", headers={"Range": "bytes=0-99"})
    assert resp.status_code == 206
    assert resp.headers["content-range"] == f"bytes 0-99/{len(PAYLOAD)}"
    assert resp.headers["content-length"] == "100"
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.content == PAYLOAD[:100]


async def test_open_ended_and_suffix_ranges(client, upload):
    video = await _stored(upload)
    url = f"/api/videos/stream/{video['stored_name']}"

    tail = await client.get(url, headers={"Range": "bytes=4990-"})
    assert tail.status_code == 206
    assert tail.content == PAYLOAD[4990:]
    assert tail.headers["content-range"] == f"bytes 4990-4999/{len(PAYLOAD)}"

    suffix = await client.get(url, headers={"Range": "bytes=-10"})
    assert suffix.content == PAYLOAD[-10:]


async def test_unsatisfiable_range(client, upload):
    video = await _stored(upload)
    url = f"/api/videos/stream/{video['stored_name']}"
    for header in ("bytes=9000-9100", "bytes=0-1,4-5"):
        resp = await client.get(url, headers={"Range": header})
        assert resp.status_code == 416
        assert resp.headers["content-range"] == f"bytes */{len(PAYLOAD)}"


async def test_content_type_follows_item(client, upload):
    video = await _stored(upload, filename="clip.webm", mime="video/webm")
    resp = await client.get(f"/api/videos/stream/{video['stored_name']}")
    assert resp.headers["content-type"].startswith("video/webm")


async def test_private_stream_policy(client, upload, auth):
    video = await _stored(upload, visibility="private", headers=auth("alice"))
    url = f"/api/videos/stream/{video['stored_name']}"
    assert (await client.get(url)).status_code == 401
    assert (await client.get(url, headers=auth("mallory"))).status_code == 403
    owner = await client.get(url, headers={**auth("alice"), "Range": "bytes=0-9"})
    assert owner.status_code == 206
    assert owner.content == PAYLOAD[:10]


async def test_tenant_stream_policy(client, upload, auth):
    video = await _stored(upload, headers=auth("a", tenant="acme"))
    url = f"/api/videos/stream/{video['stored_name']}"
    resp = await client.get(url, headers=auth("g", tenant="globex"))
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden_tenant_mismatch"


async def test_unknown_key(client):
    resp = await client.get("/api/videos/stream/1700000000000-deadbeef.mp4")
    assert resp.status_code == 404


async def test_bytes_missing_on_disk(client, upload, storage_root):
    video = await _stored(upload)
    os.remove(os.path.join(storage_root, video["stored_name"]))
    resp = await client.get(f"/api/videos/stream/{video['stored_name']}")
    assert resp.status_code == 404


async def test_policy_is_checked_before_storage(client, upload, storage_root):
    # A private item with missing bytes still answers 401, not 404.
    from streamit.core.db import SessionLocal
    from streamit.modules.videos.repository import VideoRepository

    async with SessionLocal() as s:
        await VideoRepository(s).create(
            owner_id="alice", stored_name="1-private.mp4", original_name="p.mp4",
            mime_type="video/mp4", size_bytes=1, status="done", sensitivity="safe", visibility="private",
        )
        await s.commit()
    assert (await client.get("/api/videos/stream/1-private.mp4")).status_code == 401
