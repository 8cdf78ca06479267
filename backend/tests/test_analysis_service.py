import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import openai
import pytest
from sqlalchemy import text

from hackjudge.analysis.formatting import DECK_HEADER, DEMO_HEADER, REPOSITORY_HEADER
from hackjudge.enums import FORCE_CLAIMABLE_STATUSES, TRIGGER_CLAIMABLE_STATUSES, SubmissionStatus
from hackjudge.models import Challenge
from hackjudge.services.analysis_service import AnalysisOutcomeKind, dispatch_analysis
from hackjudge.timeutils import utcnow

from fakes import S1_RESPONSE, ExplodingFetcher, FakeOpenAI

LLM_REQUEST = httpx.Request("POST", "https://llm.test/v1/chat/completions")


@pytest.mark.asyncio
async def test_analysis_persists_score_and_skips_missing_deck(service, store, fetchers, fake_llm, create_submission):
    submission = await create_submission()

    outcome = await service.analyze(submission.id)

    assert outcome.kind == AnalysisOutcomeKind.ANALYZED
    assert outcome.result.score_llm == 72.0
    assert fetchers.repository.calls == ["https://github.com/u/r"]
    assert fetchers.deck.calls == []
    assert fetchers.demo.calls == ["https://example.com"]

    prompt = fake_llm.completions.calls[0]["messages"][1]["content"]
    assert REPOSITORY_HEADER in prompt
    assert DEMO_HEADER in prompt
    assert "- Response Time: 120ms" in prompt
    assert DECK_HEADER not in prompt

    stored = await store.get(submission.id)
    assert stored.status == SubmissionStatus.ANALYZED
    assert stored.score_llm == 72.0
    assert stored.rubric_scores_json == {"problem_fit": 20, "tech_depth": 25, "ux_flow": 17, "impact": 10}
    assert stored.rationale_md == "Solid implementation with a working demo."
    assert stored.ai_detailed_analysis == {"strengths": ["Live demo"], "weaknesses": ["No tests"]}
    assert stored.ai_analyzed_at is not None
    assert stored.ai_analyzed_at.utcoffset() == timedelta(0)
    assert stored.score_auto == 10
    assert stored.auto_checks_json["has_writeup"] is False


@pytest.mark.asyncio
async def test_repeat_trigger_returns_stored_result_without_external_calls(service, fetchers, fake_llm, create_submission):
    submission = await create_submission()
    await service.analyze(submission.id)

    again = await service.analyze(submission.id)

    assert again.kind == AnalysisOutcomeKind.ALREADY_ANALYZED
    assert again.result.score_llm == 72.0
    assert len(fetchers.repository.calls) == 1
    assert len(fetchers.demo.calls) == 1
    assert len(fake_llm.completions.calls) == 1


@pytest.mark.asyncio
async def test_force_reanalysis_rescores(service, fake_llm, create_submission):
    submission = await create_submission()
    await service.analyze(submission.id)
    fake_llm.completions.responses = ['{"score": 40, "subscores": {}, "rationale": "Re-scored."}']

    outcome = await service.analyze(submission.id, force=True)

    assert outcome.kind == AnalysisOutcomeKind.ANALYZED
    assert outcome.result.score_llm == 40.0
    assert outcome.result.rationale_md == "Re-scored."


@pytest.mark.asyncio
async def test_unknown_submission(service):
    outcome = await service.analyze("missing")

    assert outcome.kind == AnalysisOutcomeKind.NOT_FOUND
    assert not outcome.succeeded


@pytest.mark.asyncio
async def test_scoring_failure_marks_row_failed_and_allows_retry(service, store, fake_llm, create_submission):
    submission = await create_submission()
    fake_llm.completions.responses = [openai.APITimeoutError(request=LLM_REQUEST), S1_RESPONSE]

    failed = await service.analyze(submission.id)

    assert failed.kind == AnalysisOutcomeKind.FAILED
    assert failed.error == "Scoring failed (timeout)"
    stored = await store.get(submission.id)
    assert stored.status == SubmissionStatus.FAILED
    assert stored.ai_analyzed_at is None
    assert stored.score_llm is None

    retried = await service.analyze(submission.id)

    assert retried.kind == AnalysisOutcomeKind.ANALYZED
    assert (await store.get(submission.id)).status == SubmissionStatus.ANALYZED


@pytest.mark.asyncio
async def test_fetcher_crash_degrades_to_warning_block(service, fetchers, fake_llm, create_submission):
    service.demo_fetcher = ExplodingFetcher()
    submission = await create_submission()

    outcome = await service.analyze(submission.id)

    assert outcome.kind == AnalysisOutcomeKind.ANALYZED
    prompt = fake_llm.completions.calls[0]["messages"][1]["content"]
    assert "WARNING: demo evidence could not be collected" in prompt
    assert fetchers.repository.calls == ["https://github.com/u/r"]


@pytest.mark.asyncio
async def test_unsupported_repository_host_is_not_fetched(service, fetchers, fake_llm, create_submission):
    submission = await create_submission(repo_url="https://gitlab.com/u/r", demo_url=None)

    await service.analyze(submission.id)

    assert fetchers.repository.calls == []
    prompt = fake_llm.completions.calls[0]["messages"][1]["content"]
    assert "Repository host is not supported" in prompt


@pytest.mark.asyncio
async def test_challenge_rubric_is_used(service, session_factory, challenge, fake_llm, create_submission):
    async with session_factory() as session:
        stored_challenge = await session.get(Challenge, challenge.id)
        stored_challenge.rubric = {"innovation": {"max_points": 50}, "execution": {"max_points": 50}}
        session.add(stored_challenge)
        await session.commit()
    fake_llm.completions.responses = ['{"subscores": {"innovation": 40, "execution": 30}}']
    submission = await create_submission()

    outcome = await service.analyze(submission.id)

    assert outcome.result.rubric_scores_json == {"innovation": 40, "execution": 30}
    assert outcome.result.score_llm == 70.0


@pytest.mark.asyncio
async def test_only_one_concurrent_claim_succeeds(store, create_submission):
    submission = await create_submission()

    first, second = await asyncio.gather(
        store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES),
        store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES),
    )

    claimed = [row for row in (first, second) if row is not None]
    assert len(claimed) == 1
    assert claimed[0].status == SubmissionStatus.ANALYZING
    assert claimed[0].analysis_started_at is not None


@pytest.mark.asyncio
async def test_trigger_while_analyzing_reports_in_progress(service, store, fetchers, create_submission):
    submission = await create_submission()
    await store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES)

    outcome = await service.analyze(submission.id)

    assert outcome.kind == AnalysisOutcomeKind.IN_PROGRESS
    assert fetchers.repository.calls == []


@pytest.mark.asyncio
async def test_reviewed_rows_are_only_claimable_by_force(store, create_submission):
    submission = await create_submission(status=SubmissionStatus.APPROVED)

    assert await store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES) is None
    assert await store.claim_for_analysis(submission.id, claimable=FORCE_CLAIMABLE_STATUSES) is not None


@pytest.mark.asyncio
async def test_reviewed_row_without_analysis_is_not_claimable(service, store, fetchers, fake_llm, create_submission):
    submission = await create_submission(status=SubmissionStatus.APPROVED)

    outcome = await service.analyze(submission.id)

    assert outcome.kind == AnalysisOutcomeKind.NOT_CLAIMABLE
    assert "APPROVED" in outcome.error
    assert fetchers.repository.calls == []
    assert (await store.get(submission.id)).status == SubmissionStatus.APPROVED

    forced = await service.analyze(submission.id, force=True)

    assert forced.kind == AnalysisOutcomeKind.ANALYZED
    assert len(fake_llm.completions.calls) == 1


@pytest.mark.asyncio
async def test_claim_lost_to_a_finished_run_returns_stored_result(service, store, create_submission):
    submission = await create_submission()
    await store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES)
    await store.save_analysis(
        submission.id,
        score_llm=64.0,
        rubric_scores_json={"problem_fit": 16},
        rationale_md="Stored by another worker.",
        ai_detailed_analysis=None,
        ai_analyzed_at=utcnow(),
    )

    outcome = await service._claim_refused(submission.id)

    assert outcome.kind == AnalysisOutcomeKind.ALREADY_ANALYZED
    assert outcome.result.score_llm == 64.0


@pytest.mark.asyncio
async def test_stale_claims_are_released(store, create_submission):
    submission = await create_submission()
    await store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES)

    assert await store.release_stale_claims(cutoff=utcnow() - timedelta(minutes=5)) == 0
    assert await store.release_stale_claims(cutoff=utcnow() + timedelta(seconds=1)) == 1
    assert (await store.get(submission.id)).status == SubmissionStatus.FAILED


@pytest.mark.asyncio
async def test_batch_counts_successes_and_failures(service, fake_llm, sleeps, create_submission):
    submissions = [await create_submission() for _ in range(3)]
    fake_llm.completions.responses = [S1_RESPONSE, "not json at all", S1_RESPONSE]

    summary = await service.analyze_batch([s.id for s in submissions] + ["missing"])

    assert summary.successful == 2
    assert summary.failed == 2
    assert [item.id for item in summary.results] == [s.id for s in submissions] + ["missing"]
    assert [item.success for item in summary.results] == [True, False, True, False]
    assert summary.results[1].error == "Scoring failed (malformed)"
    assert summary.results[3].error == "Submission not found"
    assert sleeps == [1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_batch_reanalyzes_already_analyzed_rows(service, fake_llm, create_submission):
    submission = await create_submission()
    await service.analyze(submission.id)

    summary = await service.analyze_batch([submission.id])

    assert summary.successful == 1
    assert len(fake_llm.completions.calls) == 2


@pytest.mark.asyncio
async def test_dispatch_swallows_failures(service, store, create_submission):
    service.scoring_client.client = FakeOpenAI(openai.APIConnectionError(request=LLM_REQUEST))
    submission = await create_submission()

    await dispatch_analysis(service, submission.id)

    assert (await store.get(submission.id)).status == SubmissionStatus.FAILED


@pytest.mark.asyncio
async def test_status_and_timestamps_are_stored_as_values_in_utc(service, session_factory, create_submission):
    submission = await create_submission()
    await service.analyze(submission.id)

    async with session_factory() as session:
        row = (
            await session.execute(
                text("SELECT status, ai_analyzed_at FROM submissions WHERE id = :id"),
                {"id": submission.id},
            )
        ).one()
        owner_role = (
            await session.execute(text("SELECT role FROM profiles WHERE id = :id"), {"id": submission.user_id})
        ).scalar_one()

    assert row.status == "ANALYZED"
    assert owner_role == "builder"
    assert row.ai_analyzed_at is not None


@pytest.mark.asyncio
async def test_naive_and_offset_timestamps_are_normalized_to_utc(store, create_submission):
    submission = await create_submission()
    await store.claim_for_analysis(submission.id, claimable=TRIGGER_CLAIMABLE_STATUSES)
    offset = timezone(timedelta(hours=9))

    await store.save_analysis(
        submission.id,
        score_llm=50.0,
        rubric_scores_json={},
        rationale_md="",
        ai_detailed_analysis=None,
        ai_analyzed_at=datetime(2024, 5, 1, 19, 0, tzinfo=offset),
    )
    # naive cutoffs are read as UTC
    assert await store.release_stale_claims(cutoff=datetime(2000, 1, 1)) == 0

    stored = await store.get(submission.id)
    assert stored.ai_analyzed_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert stored.created_at.tzinfo is not None
