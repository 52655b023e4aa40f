import json

import pytest
from fastapi.testclient import TestClient

from tableread import app as stitch_app
from tableread.stitcher import AudioStitcher


@pytest.fixture
def client(monkeypatch, clip_server, wav_bytes):
    transport = clip_server(
        {
            "/0.wav": wav_bytes(4410),
            "/1.wav": wav_bytes(8820, channels=2),
            "/junk.wav": b"not audio",
        }
    )
    monkeypatch.setattr(stitch_app, "stitcher", AudioStitcher(transport=transport))
    return TestClient(stitch_app.app)


def _parse_sse(body: str):
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_health_reports_defaults(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["busy"] is False
    assert body["defaults"] == {"pauseMs": 750, "roomToneVolume": 0.08, "sampleRate": 44100}


def test_stitch_returns_playable_recording(client):
    resp = client.post(
        "/stitch",
        json={"clips": ["https://clips.test/0.wav", "https://clips.test/1.wav"], "pauseMs": 600},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["frameCount"] == 4410 + 8820 + 26460
    assert body["durationSeconds"] == pytest.approx(0.9)
    assert body["handle"].startswith("blob:tableread/")

    audio = client.get(body["url"])
    assert audio.status_code == 200
    assert audio.headers["content-type"] == "audio/wav"
    assert audio.content[:4] == b"RIFF"

    assert client.delete(body["url"]).status_code == 204
    assert client.get(body["url"]).status_code == 404
    assert client.delete(body["url"]).status_code == 404


def test_stitch_maps_fetch_error_to_502(client):
    resp = client.post("/stitch", json={"clips": ["https://clips.test/0.wav", "https://clips.test/nope.wav"]})

    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["error"] == "FetchError"
    assert detail["stage"] == "loading"
    assert detail["clipIndex"] == 1


def test_stitch_maps_decode_error_to_422(client):
    resp = client.post("/stitch", json={"clips": ["https://clips.test/junk.wav"]})

    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "DecodeError"


@pytest.mark.parametrize(
    "body",
    [
        {"clips": []},
        {"clips": ["https://clips.test/0.wav"], "pauseMs": -1},
        {"clips": ["https://clips.test/0.wav"], "roomToneVolume": 1.5},
        {"clips": ["https://clips.test/0.wav"], "unknown": True},
    ],
)
def test_stitch_rejects_invalid_request(client, body):
    assert client.post("/stitch", json=body).status_code == 400


def test_stitch_rejects_non_json(client):
    resp = client.post("/stitch", content=b"{", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "invalid json"


def test_stitch_stream_emits_progress_then_result(client):
    with client.stream("POST", "/stitch/stream", json={"clips": ["https://clips.test/0.wav"]}) as resp:
        assert resp.status_code == 200
        body = "".join(resp.iter_text())

    events = _parse_sse(body)
    kinds = [kind for kind, _ in events]
    assert kinds[-1] == "result"
    assert set(kinds[:-1]) == {"progress"}
    stages = [data["stage"] for kind, data in events if kind == "progress"]
    assert stages[0] == "loading"
    assert stages[-1] == "exporting"
    assert events[-1][1]["frameCount"] == 4410


def test_stitch_stream_reports_errors(client):
    with client.stream("POST", "/stitch/stream", json={"clips": ["https://clips.test/missing.wav"]}) as resp:
        body = "".join(resp.iter_text())

    events = _parse_sse(body)
    assert events[-1][0] == "error"
    assert events[-1][1]["error"] == "FetchError"
    assert all(data["stage"] == "loading" for kind, data in events if kind == "progress")


def test_stitch_rejects_server_local_paths(client, tmp_path, wav_bytes):
    private = tmp_path / "private.wav"
    private.write_bytes(wav_bytes(441))

    for clip in (str(private), private.as_uri(), str(tmp_path / "missing.wav"), "/etc/hostname"):
        resp = client.post("/stitch", json={"clips": ["https://clips.test/0.wav", clip]})
        assert resp.status_code == 400
        assert "index 1" in resp.json()["detail"]

    assert len(stitch_app.stitcher.registry) == 0


def test_stitch_stream_rejects_server_local_paths(client, tmp_path):
    resp = client.post("/stitch/stream", json={"clips": [str(tmp_path / "a.wav")]})

    assert resp.status_code == 400
