"""Tests for the FastAPI surface."""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from fastapi.testclient import TestClient


@pytest.fixture
def server():
    from policyqa.server import app as server_module
    return server_module


@pytest.fixture
def mock_pipeline():
    from policyqa.retriever.confidence import ConfidenceLevel
    from policyqa.retriever.pipeline import AnswerResult
    pipeline = Mock()
    pipeline.ask = AsyncMock(return_value=AnswerResult(
        answer="MA payments grow **5.06%** in 2027.",
        confidence=ConfidenceLevel.MEDIUM,
        queries=["q"],
        chunk_count=2,
    ))
    return pipeline


@pytest.fixture
def client(server, mock_pipeline):
    with patch.object(server, "pipeline", mock_pipeline):
        yield TestClient(server.app)


class TestAskEndpoint:
    def test_answer(self, client, mock_pipeline):
        response = client.post("/ask", json={"question": "What is the MA growth for 2027?"})

        assert response.status_code == 200
        assert response.json() == {
            "answer": "MA payments grow **5.06%** in 2027.",
            "confidence": "medium",
        }
        args = mock_pipeline.ask.call_args.args
        assert args[0] == "What is the MA growth for 2027?"
        assert args[1] == []

    def test_history_converted(self, client, mock_pipeline):
        from policyqa.retriever.prompt_builder import ConversationTurn
        history = [{"question": "q1", "answer": "a1"}, {"question": "q2", "answer": "a2"}]

        response = client.post("/ask", json={"question": "q3", "history": history})

        assert response.status_code == 200
        assert mock_pipeline.ask.call_args.args[1] == [
            ConversationTurn("q1", "a1"),
            ConversationTurn("q2", "a2"),
        ]

    @pytest.mark.parametrize("body", [{}, {"question": ""}, {"question": "   "}, {"question": 7}, ["q"]])
    def test_missing_question(self, client, mock_pipeline, body):
        response = client.post("/ask", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing question"}
        mock_pipeline.ask.assert_not_called()

    def test_invalid_json_body(self, client):
        response = client.post("/ask", content=b"not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing question"}

    def test_invalid_history(self, client, mock_pipeline):
        response = client.post("/ask", json={"question": "q", "history": [{"question": "only"}]})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid history"}
        mock_pipeline.ask.assert_not_called()

    @pytest.mark.parametrize("history", ["q1", {"question": "q", "answer": "a"}, [["q", "a"]]])
    def test_history_must_be_list_of_turns(self, client, mock_pipeline, history):
        response = client.post("/ask", json={"question": "q", "history": history})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid history"}
        mock_pipeline.ask.assert_not_called()

    def test_upstream_failure_is_500(self, client, mock_pipeline):
        from policyqa.common.errors import SynthesisError
        mock_pipeline.ask.side_effect = SynthesisError("Answer synthesis failed: 429 rate limited")

        response = client.post("/ask", json={"question": "q"})

        assert response.status_code == 500
        assert response.json() == {"error": "Answer synthesis failed: 429 rate limited"}

    def test_unexpected_error_is_500(self, client, mock_pipeline, caplog):
        import logging
        mock_pipeline.ask.side_effect = KeyError("boom")

        with caplog.at_level(logging.ERROR, logger="policyqa.server"):
            response = client.post("/ask", json={"question": "q"})

        assert response.status_code == 500
        assert "error" in response.json()
        assert "Failed to answer" in caplog.text

    def test_not_initialized(self, server):
        with patch.object(server, "pipeline", None):
            response = TestClient(server.app).post("/ask", json={"question": "q"})

        assert response.status_code == 503
        assert response.json() == {"error": "Pipeline not initialized"}


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "policy-qa"
        assert data["initialized"] is True

    def test_health_uninitialized(self, server):
        with patch.object(server, "pipeline", None), patch.object(server, "llm_client", None):
            data = TestClient(server.app).get("/health").json()
        assert data["initialized"] is False
        assert data["llm_available"] is False


class TestLifespan:
    def test_startup_builds_pipeline(self, server, tmp_path, clean_env, monkeypatch):
        for name in ("config", "llm_client", "embedding_service", "vector_store", "pipeline"):
            monkeypatch.setattr(server, name, None)
        monkeypatch.setenv("POLICYQA_VECTOR_BACKEND", "memory")
        with patch("policyqa.common.config.CONFIG_PATH", tmp_path / "absent.json"):
            with TestClient(server.app) as client:
                data = client.get("/health").json()

        assert data["initialized"] is True
        assert data["vector_backend"] == "memory"
        assert server.pipeline is None
