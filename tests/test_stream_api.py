import re

import pytest

from conftest import ADMIN, OTHER, OWNER, SECRET, make_payload

MB = 1_000_000
CONTENT_RANGE = re.compile(r"bytes (\d+)-(\d+)/(\d+)")


@pytest.fixture
def track(add_track):
    return add_track(make_payload(MB))


def stream_url(track_id):
    return f"/api/tracks/{track_id}/stream"


def test_first_request_open_ended(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(Range="bytes=0-"))
    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 0-262143/1000000"
    assert response.headers["Content-Length"] == "262144"
    assert response.headers["Accept-Ranges"] == "bytes"
    assert response.headers["Cache-Control"] == "public, max-age=3600, must-revalidate"
    assert response.headers["Content-Type"] == "audio/mpeg"
    assert response.data == make_payload(MB)[:262144]


def test_seek_mid_file(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(Range="bytes=500000-"))
    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 500000-999999/1000000"
    assert response.headers["Content-Length"] == "500000"
    assert response.data == make_payload(MB)[500000:]


def test_no_range_header_gets_first_chunk(client, add_track, auth):
    small = add_track(make_payload(100))
    response = client.get(stream_url(small.id), headers=auth())
    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 0-99/100"
    assert response.data == make_payload(100)


def test_last_byte(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(Range="bytes=999999-"))
    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 999999-999999/1000000"
    assert response.data == make_payload(MB)[-1:]


def test_range_past_eof(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(Range="bytes=1000000-"))
    assert response.status_code == 416
    assert response.headers["Content-Range"] == "bytes */1000000"
    assert response.get_json()["error"]["code"] == "range_unsatisfiable"


@pytest.mark.parametrize("header,code", [
    ("bytes=abc-", "range_malformed"),
    ("bytes=-500", "range_malformed"),
    ("items=0-1", "range_malformed"),
    ("bytes=0-1,5-9", "range_multi_range_unsupported"),
])
def test_bad_range_syntax(client, track, auth, header, code):
    response = client.get(stream_url(track.id), headers=auth(Range=header))
    assert response.status_code == 416
    assert "Content-Range" not in response.headers
    body = response.get_json()
    assert body["error"]["code"] == code
    assert body["error"]["message"] == "Requested range not satisfiable"


def test_explicit_range_capped(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(Range="bytes=0-999999"))
    assert response.status_code == 206
    assert response.headers["Content-Range"] == f"bytes 0-{512 * 1024 - 1}/1000000"
    assert len(response.data) == 512 * 1024


def test_sequential_requests_reconstruct_file(client, track, auth):
    payload = make_payload(MB)
    received = b""
    start = 0
    while start < MB:
        response = client.get(stream_url(track.id), headers=auth(Range=f"bytes={start}-"))
        assert response.status_code == 206
        s, e, total = map(int, CONTENT_RANGE.fullmatch(response.headers["Content-Range"]).groups())
        assert (s, total) == (start, MB)
        assert len(response.data) == e - s + 1
        received += response.data
        start = e + 1
    assert received == payload


def test_repeated_request_is_identical(client, track, auth):
    first = client.get(stream_url(track.id), headers=auth(Range="bytes=1234-5678"))
    second = client.get(stream_url(track.id), headers=auth(Range="bytes=1234-5678"))
    assert first.headers["Content-Range"] == second.headers["Content-Range"]
    assert first.data == second.data == make_payload(MB)[1234:5679]


def test_legacy_route(client, track, auth):
    response = client.get(f"/tracks/{track.id}/stream", headers=auth(Range="bytes=0-9"))
    assert response.status_code == 206
    assert response.data == make_payload(MB)[:10]


def test_missing_token(client, track):
    response = client.get(stream_url(track.id))
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "auth_required"


def test_expired_token(client, track, make_token):
    token = make_token(OWNER, expires_in=-60)
    response = client.get(stream_url(track.id), headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "token_expired"


def test_token_signed_with_other_secret(client, track, make_token):
    token = make_token(OWNER, secret=SECRET + "-other")
    response = client.get(stream_url(track.id), headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "invalid_token"


def test_token_from_cookie(client, track, make_token):
    client.set_cookie("access_token", make_token(OWNER))
    response = client.get(stream_url(track.id), headers={"Range": "bytes=0-9"})
    assert response.status_code == 206


def test_unknown_track(client, auth):
    response = client.get(stream_url("does-not-exist"), headers=auth())
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "track_not_found"


def test_other_users_private_track(client, track, auth, add_to_crate):
    add_to_crate(track.id, public=False)
    response = client.get(stream_url(track.id), headers=auth(OTHER, Range="bytes=0-"))
    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "access_denied"


def test_public_crate_opens_access(client, track, auth, add_to_crate):
    add_to_crate(track.id, public=True)
    response = client.get(stream_url(track.id), headers=auth(OTHER, Range="bytes=0-"))
    assert response.status_code == 206


def test_admin_can_stream_any_track(client, track, auth):
    response = client.get(stream_url(track.id), headers=auth(ADMIN, role="admin", Range="bytes=0-"))
    assert response.status_code == 206


def test_missing_blob(client, add_track, auth):
    ghost = add_track(b"abc", write_blob=False)
    response = client.get(stream_url(ghost.id), headers=auth(Range="bytes=0-"))
    assert response.status_code == 500
    body = response.get_json()
    assert body["error"]["message"] == "Failed to read audio file"
    assert ghost.file_path not in response.get_data(as_text=True)


def test_stale_stored_size_uses_live_size(client, add_track, auth):
    stale = add_track(make_payload(1000), size_bytes=5000)
    response = client.get(stream_url(stale.id), headers=auth(Range="bytes=0-"))
    assert response.headers["Content-Range"] == "bytes 0-999/1000"


def test_empty_file(client, add_track, auth):
    empty = add_track(b"")
    response = client.get(stream_url(empty.id), headers=auth())
    assert response.status_code == 200
    assert response.data == b""

    response = client.get(stream_url(empty.id), headers=auth(Range="bytes=0-"))
    assert response.status_code == 416
    assert response.headers["Content-Range"] == "bytes */0"


def test_download(client, add_track, auth):
    payload = make_payload(3000)
    song = add_track(payload, filename="Café.flac", content_type="audio/flac")
    response = client.get(f"/api/tracks/{song.id}/download", headers=auth())
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "audio/flac"
    assert response.headers["Content-Length"] == "3000"
    assert response.headers["Content-Disposition"] == (
        "attachment; filename=\"Cafe.flac\"; filename*=UTF-8''Caf%C3%A9.flac"
    )
    assert response.data == payload


def test_download_requires_access(client, track, auth):
    response = client.get(f"/api/tracks/{track.id}/download", headers=auth(OTHER))
    assert response.status_code == 403


@pytest.mark.parametrize("path", ["/api/healthz", "/healthz"])
def test_health(client, path):
    response = client.get(path)
    assert response.status_code == 200
    assert response.get_json() == {
        "status": "ok", "service": "cratedrop-streamer", "version": "0.1.0",
    }


def test_unknown_route(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "not_found"


def test_cors_exposes_range_headers(client, track, auth):
    response = client.get(stream_url(track.id),
                          headers=auth(Range="bytes=0-9", Origin="https://app.example"))
    assert response.status_code == 206
    assert "Content-Range" in response.headers["Access-Control-Expose-Headers"]


def test_cors_preflight_allows_range(client, track):
    response = client.options(stream_url(track.id), headers={
        "Origin": "https://app.example",
        "Access-Control-Request-Method": "GET",
        "Access-Control-Request-Headers": "Range, Authorization",
    })
    assert response.status_code == 200
    assert "range" in response.headers["Access-Control-Allow-Headers"].lower()
