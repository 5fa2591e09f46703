"""Tests for publishing structured definitions to a document sink."""

import json

import pytest
from src.core.cdr import publish as publish_module
from src.core.cdr.models import Scoring, ScoringMethod, StructuredRule
from src.core.cdr.publish import (
    HttpEmbedder,
    JsonDirectorySink,
    build_document,
    build_embedding_text,
    publish,
)


@pytest.fixture
def sink(tmp_path):
    return JsonDirectorySink(tmp_path / "library")


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------

class TestDocuments:
    def test_embedding_text(self, definitions_by_id):
        text = build_embedding_text(definitions_by_id["heart"])
        assert text.startswith("HEART Score History, ECG, Age, Risk Factors, Troponin Risk stratifies")
        assert "chest_pain dyspnea syncope" in text
        assert text.endswith("acute coronary syndrome")

    def test_document_without_embedding(self, definitions_by_id):
        doc = build_document(definitions_by_id["heart"])
        assert "embedding" not in doc
        assert doc["id"] == "heart"

    def test_document_with_embedding(self, definitions_by_id):
        seen = []

        def embed(text):
            seen.append(text)
            return [0.1, 0.2]

        doc = build_document(definitions_by_id["nexus"], embed=embed)
        assert doc["embedding"] == [0.1, 0.2]
        assert seen == [build_embedding_text(definitions_by_id["nexus"])]


# ------------------------------------------------------------------
# Sink and publishing
# ------------------------------------------------------------------

class TestPublish:
    def test_writes_one_document_per_rule(self, sink, definitions):
        written = publish(definitions, sink)
        assert written == len(definitions)
        assert sink.ids() == sorted(d.id for d in definitions)

    def test_documents_load_back(self, sink, definitions_by_id):
        publish([definitions_by_id["pecarn"]], sink)
        restored = StructuredRule.from_document(sink.get("pecarn"))
        assert restored.scoring.ranges == definitions_by_id["pecarn"].scoring.ranges

    def test_republish_is_idempotent(self, sink, definitions):
        publish(definitions, sink)
        first = {doc_id: sink.get(doc_id) for doc_id in sink.ids()}
        publish(definitions, sink)
        second = {doc_id: sink.get(doc_id) for doc_id in sink.ids()}
        assert first == second
        assert len(list(sink.path.iterdir())) == len(definitions)

    def test_invalid_rule_skipped(self, sink, definitions_by_id, caplog):
        broken = StructuredRule(
            id="broken", name="Broken", full_name="Broken", category="TEST",
            application="", components=[],
            scoring=Scoring(method=ScoringMethod.SUM),
        )
        with caplog.at_level("ERROR", logger="src.core.cdr.publish"):
            written = publish([broken, definitions_by_id["qsofa"]], sink)
        assert written == 1
        assert sink.ids() == ["qsofa"]
        assert "broken" in caplog.text

    def test_get_missing(self, sink):
        assert sink.get("nothing") is None

    def test_files_are_json(self, sink, definitions_by_id):
        path = sink.put("heart", build_document(definitions_by_id["heart"]))
        with open(path, encoding="utf-8") as f:
            assert json.load(f)["fullName"] == "History, ECG, Age, Risk Factors, Troponin"


# ------------------------------------------------------------------
# Embedding endpoint
# ------------------------------------------------------------------

class TestHttpEmbedder:
    def test_parses_prediction(self, monkeypatch):
        calls = {}

        def fake_post(url, json=None, headers=None, timeout=None):
            calls.update(url=url, json=json, headers=headers)
            return FakeResponse({"predictions": [{"embeddings": {"values": [0.5] * 4}}]})

        monkeypatch.setattr(publish_module.requests, "post", fake_post)
        embed = HttpEmbedder("http://embed.local/predict", token="secret", dimension=4)
        assert embed("some text") == [0.5] * 4
        assert calls["json"]["instances"][0]["content"] == "some text"
        assert calls["headers"]["Authorization"] == "Bearer secret"

    def test_wrong_dimension(self, monkeypatch):
        monkeypatch.setattr(
            publish_module.requests, "post",
            lambda *a, **kw: FakeResponse({"predictions": [{"embeddings": {"values": [1.0]}}]}),
        )
        with pytest.raises(ValueError):
            HttpEmbedder("http://embed.local/predict", dimension=768)("text")


# ------------------------------------------------------------------
# CLI
# ------------------------------------------------------------------

class TestCli:
    def test_main_writes_library(self, tmp_path, definitions):
        out = tmp_path / "cli"
        assert publish_module.main(["--out", str(out), "--skip-embeddings"]) == 0
        assert len(list(out.glob("*.json"))) == len(definitions)
