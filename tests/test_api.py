"""Endpoint tests with the Gemini-backed collaborators swapped for fakes."""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGeminiClient, consolidated_reply
from signline.agent.agents import RecognitionAgent
from signline.agent.graph import AnnouncementGraph, ValidationGraph
from signline.main import (
    app,
    get_announcement_graph,
    get_pipeline,
    get_recognition_agent,
    get_recognition_client,
)
from signline.pipeline import GamePipeline

SNAPSHOT = "B" * 160


@pytest.fixture
def fakes():
    """Install fake clients behind every injected dependency."""
    validation_client = FakeGeminiClient([consolidated_reply(100)])
    announcement_client = FakeGeminiClient([json.dumps({"phonetic": "Bee-Shat", "reasoning": ""})])
    recognition_client = FakeGeminiClient(['{"letter": "a"}'])

    pipeline = GamePipeline(ValidationGraph(validation_client))
    announcement_graph = AnnouncementGraph(announcement_client)
    recognition_agent = RecognitionAgent()

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_announcement_graph] = lambda: announcement_graph
    app.dependency_overrides[get_recognition_client] = lambda: recognition_client
    app.dependency_overrides[get_recognition_agent] = lambda: recognition_agent

    yield {
        "validation": validation_client,
        "announcement": announcement_client,
        "recognition": recognition_client,
    }

    app.dependency_overrides.clear()


@pytest.fixture
def client(fakes):
    return TestClient(app)


def _start(client, line_id="north-south", word_id="ns-hello"):
    response = client.post("/game/start", json={"lineId": line_id, "wordId": word_id})
    assert response.status_code == 200
    return response.json()


class TestTracingHeaders:

    def test_generated_request_id_and_timing(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert len(response.headers["x-request-id"]) == 8
        assert "total;dur=" in response.headers["server-timing"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"x-request-id": "abc12345"})
        assert response.headers["x-request-id"] == "abc12345"


class TestStart:

    def test_catalogue(self, client):
        payload = client.get("/game/start").json()
        assert {line["id"] for line in payload["lines"]} >= {"north-south", "circle", "tel"}
        assert payload["vocabulary"]["north-south"][0]["word"] == "HELLO"

    def test_creates_session(self, client):
        payload = _start(client)
        assert payload["session"]["expectedWord"] == "HELLO"
        assert payload["session"]["status"] == "initialized"
        assert payload["word"]["level"] == 1
        assert payload["line"] == {"id": "north-south", "name": "North-South Line", "color": "#D42E12"}

    def test_unknown_line(self, client):
        response = client.post("/game/start", json={"lineId": "jurong-region", "wordId": "ns-hello"})
        assert response.status_code == 400
        assert response.json()["error"] == "Unknown MRT line: jurong-region"

    def test_unknown_word(self, client):
        response = client.post("/game/start", json={"lineId": "circle", "wordId": "ns-hello"})
        assert response.status_code == 400
        assert "Unknown word" in response.json()["error"]

    def test_malformed_request(self, client):
        response = client.post("/game/start", json={"lineId": "circle"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Invalid request"
        assert body["details"]


class TestValidate:

    def test_scores_attempt_with_streaming_stats(self, client, fakes):
        session = _start(client)["session"]
        session.update({"finalTranscription": "HELLO", "durationMs": 5000, "status": "streaming"})

        response = client.post(
            "/game/validate",
            json={"session": session, "streamingStats": {"frameCount": 10, "transcriptionCount": 3}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sessionId"] == session["sessionId"]
        assert body["requestId"] == response.headers["x-request-id"]
        assert body["score"] == 92
        assert body["validation"]["matchPercentage"] == 100
        assert body["scoring"]["breakdown"]["speed"] == 60
        assert body["feedback"]["technicalTips"]
        assert body["metrics"]["totalInputTokens"] == 1000 + 2580
        assert body["metrics"]["durationMs"] == 5000
        assert body["error"] is None
        assert "pipeline;dur=" in response.headers["server-timing"]
        assert len(fakes["validation"].calls) == 1

    def test_existing_stream_entry_is_kept(self, client):
        session = _start(client)["session"]
        session.update({"finalTranscription": "HELLO", "durationMs": 5000})
        session["costTracking"] = {
            "live_stream_0": {
                "model": "gemini-2.0-flash-exp",
                "sessionDurationMs": 5000,
                "estimatedInputTokens": 100,
                "estimatedOutputTokens": 5,
                "estimatedCost": 0.00001,
                "frameCount": 1,
            }
        }

        body = client.post(
            "/game/validate", json={"session": session, "streamingStats": {"frameCount": 10}}
        ).json()

        assert body["metrics"]["totalInputTokens"] == 1000 + 100

    def test_missing_transcription(self, client, fakes):
        session = _start(client)["session"]

        body = client.post("/game/validate", json={"session": session}).json()

        assert body["success"] is False
        assert body["error"] == "No transcription to validate"
        assert body["score"] is None
        assert fakes["validation"].calls == []


class TestAnnounce:

    def test_delayed_announcement(self, client):
        response = client.post(
            "/game/announce", json={"target": "Bishan", "transcription": "BYSHAT", "matchPercentage": 67}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["scenario"] == "delayed"
        assert body["phonetic"] == "Bee-Shat"
        assert body["audioMimeType"] == "audio/wav"
        assert body["audioBase64"]
        assert body["metrics"]["phoneticCost"] > 0
        assert "announcement_graph;dur=" in response.headers["server-timing"]

    def test_match_out_of_range(self, client):
        response = client.post(
            "/game/announce", json={"target": "Bishan", "transcription": "BYSHAT", "matchPercentage": 150}
        )
        assert response.status_code == 400


class TestRecognize:

    def test_recognizes_letter(self, client, fakes):
        body = client.post("/game/recognize", json={"image": SNAPSHOT}).json()

        assert body["success"] is True
        assert body["letter"] == "A"
        assert body["metrics"]["inputTokens"] == 1000
        assert fakes["recognition"].calls[0]["image"] == SNAPSHOT

    def test_failed_recognition_defaults_to_marker(self, client, fakes):
        fakes["recognition"].replies[:] = ["cannot see a hand"]

        body = client.post("/game/recognize", json={"image": SNAPSHOT}).json()

        assert body["success"] is False
        assert body["letter"] == "?"
        assert body["error"] == "No JSON in response"

    def test_image_too_short(self, client):
        response = client.post("/game/recognize", json={"image": "abc"})
        assert response.status_code == 400


def test_ping_is_not_cached(client):
    response = client.get("/game/ping")
    assert response.json()["ok"] is True
    assert "no-store" in response.headers["cache-control"]
