"""Tests for the speech act classification oracle."""

import json
import logging
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock


def make_email():
    from parley.common.schemas import Email, EmailAddress
    return Email(
        message_id="m1",
        thread_id="t1",
        sender=EmailAddress(email="alice@x.com", name="Alice"),
        to=[EmailAddress(email="bob@x.com")],
        cc=[EmailAddress(email="carol@x.com")],
        subject="Plan",
        body="Can you send the deck? I will review it tomorrow.",
        timestamp=datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc),
    )


def make_llm(response="[]", available=True, error=None):
    llm = MagicMock()
    llm.is_available = available
    if error is not None:
        llm.generate.side_effect = error
    else:
        llm.generate.return_value = response
    return llm


class TestMapSpeechActType:
    @pytest.mark.parametrize("label,expected", [
        ("REQUEST", "request"),
        ("commitment", "commitment"),
        (" Decision ", "decision"),
        ("ACKNOWLEDGMENT", "acknowledgment"),
    ])
    def test_known_labels(self, label, expected):
        from parley.speech_acts import map_speech_act_type
        assert map_speech_act_type(label).value == expected

    def test_unknown_label_is_statement(self):
        from parley.speech_acts import map_speech_act_type
        from parley.common.schemas import SpeechActType
        assert map_speech_act_type("RANT") == SpeechActType.STATEMENT
        assert map_speech_act_type(None) == SpeechActType.STATEMENT


class TestSpeechActDetector:
    @pytest.mark.asyncio
    async def test_detect_builds_speech_acts(self):
        from parley.speech_acts import SpeechActDetector
        from parley.common.schemas import SpeechActType
        reply = json.dumps([
            {"type": "REQUEST", "content": "Send the deck", "confidence": 0.9},
            {"type": "COMMITMENT", "content": "Review tomorrow", "confidence": 0.8,
             "metadata": {"deadline": "tomorrow"}},
        ])

        acts = await SpeechActDetector(make_llm(reply)).detect(make_email())

        assert [a.type for a in acts] == [SpeechActType.REQUEST, SpeechActType.COMMITMENT]
        first = acts[0]
        assert first.actor.email == "alice@x.com"
        assert [p.email for p in first.participants] == ["alice@x.com", "bob@x.com", "carol@x.com"]
        assert first.source_message_id == "m1"
        assert first.thread_id == "t1"
        assert first.timestamp == make_email().timestamp
        assert acts[1].metadata == {"deadline": "tomorrow"}
        assert acts[0].id != acts[1].id

    @pytest.mark.asyncio
    async def test_prompt_and_sampling(self):
        from parley.speech_acts import SpeechActDetector
        llm = make_llm()

        await SpeechActDetector(llm, max_tokens=512, temperature=0.1, timeout=5.0).detect(make_email())

        prompt = llm.generate.call_args.args[0]
        assert "Email from: Alice <alice@x.com>" in prompt
        assert "Can you send the deck?" in prompt
        assert llm.generate.call_args.kwargs == {"max_tokens": 512, "temperature": 0.1, "timeout": 5.0}

    @pytest.mark.asyncio
    async def test_confidence_is_clamped(self):
        from parley.speech_acts import SpeechActDetector
        reply = json.dumps([
            {"type": "STATEMENT", "content": "a", "confidence": 7},
            {"type": "STATEMENT", "content": "b", "confidence": "high"},
            {"type": "STATEMENT", "content": "c"},
        ])
        acts = await SpeechActDetector(make_llm(reply)).detect(make_email())
        assert [a.confidence for a in acts] == [1.0, 0.5, 0.5]

    @pytest.mark.asyncio
    async def test_skips_malformed_items(self):
        from parley.speech_acts import SpeechActDetector
        reply = json.dumps([
            "just a string",
            {"type": "QUESTION", "content": "  "},
            {"type": "QUESTION", "content": "When?"},
        ])
        acts = await SpeechActDetector(make_llm(reply)).detect(make_email())
        assert [a.content for a in acts] == ["When?"]

    @pytest.mark.asyncio
    async def test_unavailable_returns_empty(self):
        from parley.speech_acts import SpeechActDetector
        llm = make_llm(available=False)
        assert await SpeechActDetector(llm).detect(make_email()) == []
        llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_error_returns_empty(self, caplog):
        from parley.speech_acts import SpeechActDetector
        llm = make_llm(error=RuntimeError("rate limited"))

        with caplog.at_level(logging.WARNING, logger="parley.speech_acts.detector"):
            acts = await SpeechActDetector(llm).detect(make_email())

        assert acts == []
        assert "rate limited" in caplog.text

    @pytest.mark.asyncio
    async def test_unparseable_reply_returns_empty(self, caplog):
        from parley.speech_acts import SpeechActDetector

        with caplog.at_level(logging.WARNING, logger="parley.speech_acts.detector"):
            acts = await SpeechActDetector(make_llm("no idea")).detect(make_email())

        assert acts == []
        assert "No speech acts parsed" in caplog.text

    @pytest.mark.asyncio
    async def test_detect_many_concatenates(self):
        from parley.speech_acts import SpeechActDetector
        reply = json.dumps([{"type": "GREETING", "content": "Hi"}])
        llm = make_llm(reply)

        acts = await SpeechActDetector(llm).detect_many([make_email(), make_email()])

        assert len(acts) == 2
        assert llm.generate.call_count == 2
