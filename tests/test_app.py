import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import STAGE_A_HELLO, STAGE_C_HELLO
from dal.vocabulary_dal import VocabularyDAL
from main import create_app
from routes.realtime_ws import router as realtime_router
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


@pytest.fixture
def app_factory(tmp_path, vocabulary):
    asyncio.run(VocabularyDAL(AsyncDatabaseInitializer(tmp_path)).upsert_many(vocabulary))

    def build(model):
        settings = Settings(api_keys=("key-1", "key-2"), model="test-model", log_level="WARNING")
        return create_app(settings=settings, db_dir=str(tmp_path), client_factory=model.factory)

    return build


def test_health_reports_runtime(app_factory, scripted):
    with TestClient(app_factory(scripted())) as client:
        body = client.get("/health").json()
    assert body["ok"] is True
    assert body["credentials"] == 2
    assert body["active_sessions"] == 0


def test_websocket_result_then_duplicate(app_factory, scripted):
    model = scripted(STAGE_A_HELLO, STAGE_C_HELLO)
    with TestClient(app_factory(model)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "frame", "image": "data:image/jpeg;base64,AAAA"})
            result = ws.receive_json()
            ws.send_json({"kind": "frame", "image": "AAAA"})
            partial = ws.receive_json()

    assert result["type"] == "result"
    assert result["text"] == "hello"
    assert result["analysis"]["candidates"][0] == "hello"
    assert result["analysis"]["stageA"]["candidateLabels"] == ["hello"]
    assert partial == {"type": "partial", "text": "hello", "confidence": 0.9, "skipped": True, "reason": "duplicate"}
    assert len(model.calls) == 2


def test_websocket_rejects_bad_messages_without_calling_model(app_factory, scripted):
    model = scripted()
    with TestClient(app_factory(model)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "frame"})
            missing = ws.receive_json()
            ws.send_json({"type": "audio", "image": "AAAA"})
            unsupported = ws.receive_json()
            ws.send_text("not json")
            invalid = ws.receive_json()

    assert missing == {"type": "error", "message": "Image payload is required."}
    assert unsupported["type"] == "error"
    assert invalid["type"] == "error"
    assert model.calls == []


def test_websocket_daily_quota_is_fatal(app_factory, scripted):
    model = scripted(RuntimeError("daily_quota_exhausted"))
    with TestClient(app_factory(model)) as client:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "frame", "image": "AAAA"})
            message = ws.receive_json()

    assert message["type"] == "error"
    assert message["fatal"] is True
    assert len(model.calls) == 1


def test_translate_frames_endpoint(app_factory, scripted):
    model = scripted(STAGE_A_HELLO, STAGE_C_HELLO)
    with TestClient(app_factory(model)) as client:
        response = client.post("/api/translate/frames", json={"frames": ["AAA", "BBB", "CCC", "DDD"]})

    assert response.status_code == 200
    body = response.json()
    assert body["text"].startswith("hello (90%)")
    assert body["analysis"]["detectedSign"] == "hello"
    images = [part for part in model.calls[1][1]["input"][0]["content"] if part["type"] == "input_image"]
    # two previous frames plus the current one
    assert [part["image_url"][-3:] for part in images] == ["BBB", "CCC", "DDD"]


def test_translate_frames_requires_frames(app_factory, scripted):
    with TestClient(app_factory(scripted())) as client:
        response = client.post("/api/translate/frames", json={"frames": []})
    assert response.status_code == 400


def test_vocabulary_and_sessions(app_factory, scripted):
    with TestClient(app_factory(scripted())) as client:
        vocab = client.get("/api/translate/vocabulary").json()
        started = client.post("/api/translate/session/start").json()
        session = client.get(f"/api/translate/session/{started['sessionId']}")
        missing = client.get("/api/translate/session/nope")

    assert vocab["count"] == 3
    assert vocab["signs"][0]["signName"] == "hello"
    assert session.status_code == 200
    assert session.json()["session"]["translations"] == []
    assert missing.status_code == 404


def test_single_frame_translation_is_stored_in_started_session(app_factory, scripted):
    model = scripted(STAGE_A_HELLO, STAGE_C_HELLO)
    with TestClient(app_factory(model)) as client:
        session_id = client.post("/api/translate/session/start").json()["sessionId"]
        body = {
            "imageFrame": "data:image/jpeg;base64,CUR",
            "previousFrames": ["PREV"],
            "sessionId": session_id,
            "conversationContext": [{"sign": "mother", "confidence": 0.7}],
        }
        first = client.post("/api/translate/", json=body)
        repeat = client.post("/api/translate/", json=body)
        history = client.get(f"/api/translate/session/{session_id}").json()["session"]["translations"]

    assert first.status_code == 200
    assert first.json()["translation"]["detectedSign"] == "hello"
    assert repeat.json()["skipped"] is True
    assert repeat.json()["reason"] == "duplicate"
    assert repeat.json()["translation"]["detectedSign"] == "hello"
    assert len(model.calls) == 2
    stage_c_prompt = model.calls[1][1]["input"][0]["content"][0]["text"]
    assert '"mother"' in stage_c_prompt

    assert len(history) == 1
    assert history[0]["detectedSign"] == "hello"
    assert history[0]["frameCount"] == 2


def test_single_frame_translation_without_session_is_not_stored(app_factory, scripted):
    model = scripted(STAGE_A_HELLO, STAGE_C_HELLO)
    with TestClient(app_factory(model)) as client:
        missing = client.post("/api/translate/", json={"sessionId": "abc"})
        ok = client.post("/api/translate/", json={"imageFrame": "AAAA"})
        health = client.get("/health").json()

    assert missing.status_code == 400
    assert ok.status_code == 200
    assert ok.json()["translation"]["detectedSign"] == "hello"
    assert "skipped" not in ok.json()
    # a rejected request registers no session
    assert health["active_sessions"] == 0


def test_websocket_without_runtime_closes_with_internal_error():
    app = FastAPI()
    app.include_router(realtime_router)
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as info:
        with client.websocket_connect("/ws"):
            pass
    assert info.value.code == 1011
