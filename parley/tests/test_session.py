"""
Tests for AssistantSession

End-to-end privacy scenarios: what a mixed audience gets to see when the
assistant prepares context for a reply.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

BASE_TS = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def addr(email):
    from parley.common.schemas import EmailAddress
    return EmailAddress(email=email)


def make_email(index, to, body=None):
    from parley.common.schemas import Email
    return Email(
        message_id=f"m{index}",
        thread_id="t1",
        sender=addr("alice@x.com"),
        to=[addr(a) for a in to],
        subject="Project",
        body=body or f"Message {index}",
        timestamp=BASE_TS + timedelta(minutes=index),
    )


def make_act(act_id, message_id, participants, confidence=0.9):
    from parley.common.schemas import SpeechAct, SpeechActType
    return SpeechAct(
        id=act_id,
        type=SpeechActType.COMMITMENT,
        content=f"commitment {act_id}",
        actor=addr("alice@x.com"),
        participants=[addr(p) for p in participants],
        confidence=confidence,
        source_message_id=message_id,
        thread_id="t1",
        timestamp=BASE_TS,
    )


def fake_summarizer(calls):
    from parley.common.schemas import SummaryResult

    summarizer = AsyncMock()

    def summarize(batch, thread_id):
        ids = [e.message_id for e in batch]
        calls.append(ids)
        return SummaryResult(summary="Covers " + ", ".join(ids))

    summarizer.summarize.side_effect = summarize
    return summarizer


def make_session(summarizer, assistant_email="", **config):
    from parley.memory import HybridContextAssembler, AssemblerConfig
    from parley.session import AssistantSession
    return AssistantSession(HybridContextAssembler(summarizer, AssemblerConfig(**config)),
                            assistant_email=assistant_email)


@pytest.fixture
def thread():
    """m0-m1 reached alice and bob only; charlie was added from m2 on"""
    return [make_email(i, ["bob@x.com"]) for i in range(2)] + \
           [make_email(i, ["bob@x.com", "charlie@x.com"]) for i in range(2, 7)]


class TestPrepareContext:
    @pytest.mark.asyncio
    async def test_withholds_messages_outside_audience(self, thread):
        calls = []
        session = make_session(fake_summarizer(calls), recent_window_size=10)
        for email in thread:
            session.ingest(email)

        prepared = await session.prepare_context(
            "t1", thread, ["alice@x.com", "bob@x.com", "charlie@x.com"])

        assert prepared.withheld_message_ids == ["m0", "m1"]
        assert [e.message_id for e in prepared.context.recent_messages] == \
               ["m2", "m3", "m4", "m5", "m6"]
        assert "Message 0" not in prepared.prompt_text
        assert not prepared.degraded

    @pytest.mark.asyncio
    async def test_cached_summaries_never_leak_to_new_audience(self, thread):
        calls = []
        session = make_session(fake_summarizer(calls), recent_window_size=2)
        for email in thread:
            session.ingest(email)

        first = await session.prepare_context("t1", thread, ["alice@x.com", "bob@x.com"])
        assert [s.message_ids for s in first.context.summaries] == [["m0", "m1", "m2", "m3", "m4"]]

        second = await session.prepare_context(
            "t1", thread, ["alice@x.com", "bob@x.com", "charlie@x.com"])

        assert [s.message_ids for s in second.context.summaries] == [["m2", "m3", "m4"]]
        assert "m0" not in second.prompt_text
        assert calls == [["m0", "m1", "m2", "m3", "m4"], ["m2", "m3", "m4"]]

    @pytest.mark.asyncio
    async def test_filters_speech_acts_from_repository(self, thread):
        session = make_session(fake_summarizer([]))
        session.ingest(thread[0], [make_act("private", "m0", ["alice@x.com", "bob@x.com"])])
        session.ingest(thread[2], [make_act("shared", "m2",
                                            ["alice@x.com", "bob@x.com", "charlie@x.com"])])

        prepared = await session.prepare_context(
            "t1", thread[:3], ["bob@x.com", "charlie@x.com"])

        assert [a.id for a in prepared.context.relevant_speech_acts] == ["shared"]
        assert "commitment shared" in prepared.prompt_text
        assert "commitment private" not in prepared.prompt_text

    @pytest.mark.asyncio
    async def test_min_confidence_applies_to_repository_acts(self, thread):
        from parley.memory import HybridContextAssembler
        from parley.session import AssistantSession
        session = AssistantSession(
            HybridContextAssembler(fake_summarizer([])), min_speech_act_confidence=0.5)
        session.ingest(thread[2], [
            make_act("sure", "m2", ["alice@x.com"], confidence=0.9),
            make_act("unsure", "m2", ["alice@x.com"], confidence=0.2),
        ])

        prepared = await session.prepare_context("t1", [thread[2]], ["alice@x.com"])

        assert [a.id for a in prepared.context.relevant_speech_acts] == ["sure"]

    @pytest.mark.asyncio
    async def test_filters_knowledge(self, thread):
        from parley.common.schemas import KnowledgeEntry
        session = make_session(fake_summarizer([]))
        for email in thread:
            session.ingest(email)
        entries = [
            KnowledgeEntry(id="k-old", title="Old", content="secret", source_message_ids=["m0"]),
            KnowledgeEntry(id="k-mixed", title="Mixed", content="ok", source_message_ids=["m1", "m3"]),
        ]

        prepared = await session.prepare_context(
            "t1", thread, ["alice@x.com", "charlie@x.com"], knowledge=entries)

        assert [e.id for e in prepared.context.relevant_knowledge] == ["k-mixed"]

    @pytest.mark.asyncio
    async def test_summarization_failure_degrades_to_recent(self, thread, caplog):
        import logging
        from parley.common.errors import SummarizationError
        summarizer = AsyncMock()
        summarizer.summarize.side_effect = SummarizationError("oracle down")
        session = make_session(summarizer, recent_window_size=3)
        for email in thread:
            session.ingest(email)

        with caplog.at_level(logging.WARNING, logger="parley.session"):
            prepared = await session.prepare_context("t1", thread, ["alice@x.com"])

        assert prepared.degraded
        assert prepared.context.summaries == []
        assert [e.message_id for e in prepared.context.recent_messages] == ["m4", "m5", "m6"]
        assert "oracle down" in caplog.text

    @pytest.mark.asyncio
    async def test_context_is_trimmed_to_budget(self, thread):
        calls = []
        session = make_session(fake_summarizer(calls), recent_window_size=2, max_tokens=5)
        for email in thread:
            session.ingest(email)

        prepared = await session.prepare_context("t1", thread, ["alice@x.com"])

        assert prepared.context.summaries == []
        assert len(prepared.context.recent_messages) == 2

    @pytest.mark.asyncio
    async def test_assistant_address_is_not_part_of_audience(self, thread):
        session = make_session(fake_summarizer([]), assistant_email="bot@x.com")
        for email in thread:
            session.ingest(email)

        prepared = await session.prepare_context(
            "t1", thread, ["alice@x.com", "bob@x.com", "bot@x.com"])

        assert prepared.withheld_message_ids == []
        assert len(prepared.context.recent_messages) == 7

    @pytest.mark.asyncio
    async def test_unconfigured_assistant_counts_as_audience(self, thread):
        session = make_session(fake_summarizer([]))
        for email in thread:
            session.ingest(email)

        prepared = await session.prepare_context("t1", thread, ["alice@x.com", "bot@x.com"])

        assert prepared.withheld_message_ids == [f"m{i}" for i in range(7)]


class TestIngestion:
    @pytest.mark.asyncio
    async def test_classify_and_ingest_stores_acts(self, thread):
        session = make_session(fake_summarizer([]))
        act = make_act("a1", "m0", ["alice@x.com", "bob@x.com"])
        session.detector = AsyncMock()
        session.detector.detect.return_value = [act]

        acts = await session.classify_and_ingest(thread[0])

        assert acts == [act]
        assert "a1" in session.repository
        assert session.tracker.has_access_to_message("bob@x.com", "m0")
        assert session.tracker.has_access_to_speech_act("bob@x.com", "a1")

    @pytest.mark.asyncio
    async def test_classify_without_detector_tracks_email(self, thread):
        session = make_session(fake_summarizer([]))
        assert await session.classify_and_ingest(thread[0]) == []
        assert [p.email for p in session.participants()] == ["alice@x.com", "bob@x.com"]

    def test_check_sharing(self, thread):
        session = make_session(fake_summarizer([]))
        for email in thread:
            session.ingest(email)

        result = session.check_sharing(["m0"], ["bob@x.com", "charlie@x.com"])

        assert not result.allowed
        assert [p.email for p in result.restricted_participants] == ["charlie@x.com"]

    def test_check_sharing_ignores_assistant(self, thread):
        session = make_session(fake_summarizer([]), assistant_email="bot@x.com")
        for email in thread:
            session.ingest(email)

        assert session.check_sharing(["m0"], ["alice@x.com", "bob@x.com", "bot@x.com"]).allowed


class TestFromConfig:
    def test_wires_components_from_config(self):
        from parley.common.config import ParleyConfig, MemoryConfig, PrivacyConfig
        from parley.session import AssistantSession
        config = ParleyConfig(
            memory=MemoryConfig(recent_window_size=3, skill_keywords=["budget"]),
            privacy=PrivacyConfig(min_speech_act_confidence=0.7),
            assistant_email="bot@x.com",
        )

        session = AssistantSession.from_config(config)

        assert session.assembler.config.recent_window_size == 3
        assert session.assembler.config.skill_keywords == ("budget",)
        assert session.detector is not None
        assert not session.detector.is_available
        assert session.check_sharing(["m0"], ["bot@x.com"]).allowed
