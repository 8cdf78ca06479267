from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..analysis.autoscore import compute_auto_score
from ..analysis.demo import DemoFetcher
from ..analysis.formatting import (
    format_deck_evidence,
    format_demo_evidence,
    format_fetch_failure,
    format_repository_evidence,
    format_repository_unsupported,
)
from ..analysis.github import RepositoryFetcher, is_supported_repo_url
from ..analysis.pitch_deck import PitchDeckFetcher
from ..analysis.scoring import ScoringClient, ScoringError, SubmissionContent
from ..config import Settings
from ..enums import FORCE_CLAIMABLE_STATUSES, TRIGGER_CLAIMABLE_STATUSES, SubmissionStatus
from ..models import Submission
from ..timeutils import utcnow
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)


class AnalysisOutcomeKind(str, Enum):
    ANALYZED = "analyzed"
    ALREADY_ANALYZED = "already_analyzed"
    IN_PROGRESS = "in_progress"
    NOT_CLAIMABLE = "not_claimable"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class AnalysisResult:
    score_llm: Optional[float]
    rubric_scores_json: Optional[dict[str, float]]
    rationale_md: Optional[str]
    ai_detailed_analysis: Any
    ai_analyzed_at: Optional[datetime]
    score_auto: Optional[float] = None
    auto_checks_json: Optional[dict[str, Any]] = None

    @classmethod
    def from_submission(cls, submission: Submission) -> "AnalysisResult":
        return cls(
            score_llm=submission.score_llm,
            rubric_scores_json=submission.rubric_scores_json,
            rationale_md=submission.rationale_md,
            ai_detailed_analysis=submission.ai_detailed_analysis,
            ai_analyzed_at=submission.ai_analyzed_at,
            score_auto=submission.score_auto,
            auto_checks_json=submission.auto_checks_json,
        )


@dataclass
class AnalysisOutcome:
    kind: AnalysisOutcomeKind
    submission_id: str
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind in (AnalysisOutcomeKind.ANALYZED, AnalysisOutcomeKind.ALREADY_ANALYZED)


@dataclass
class BatchItem:
    id: str
    success: bool
    error: Optional[str] = None


@dataclass
class BatchSummary:
    successful: int = 0
    failed: int = 0
    results: list[BatchItem] = field(default_factory=list)


OUTCOME_ERRORS = {
    AnalysisOutcomeKind.NOT_FOUND: "Submission not found",
    AnalysisOutcomeKind.IN_PROGRESS: "Analysis already in progress",
    AnalysisOutcomeKind.NOT_CLAIMABLE: "Submission is not eligible for analysis",
}


class AnalysisService:
    """Scores submissions from their collected evidence and stores the results."""

    def __init__(
        self,
        store: SubmissionStore,
        *,
        repository_fetcher: RepositoryFetcher,
        deck_fetcher: PitchDeckFetcher,
        demo_fetcher: DemoFetcher,
        scoring_client: ScoringClient,
        batch_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.repository_fetcher = repository_fetcher
        self.deck_fetcher = deck_fetcher
        self.demo_fetcher = demo_fetcher
        self.scoring_client = scoring_client
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, store: SubmissionStore) -> "AnalysisService":
        return cls(
            store,
            repository_fetcher=RepositoryFetcher(
                timeout=settings.repo_fetch_timeout_seconds,
                api_base=settings.github_api_base,
                raw_base=settings.github_raw_base,
                token=settings.github_token,
                user_agent=settings.fetch_user_agent,
            ),
            deck_fetcher=PitchDeckFetcher(
                timeout=settings.deck_fetch_timeout_seconds,
                user_agent=settings.fetch_user_agent,
            ),
            demo_fetcher=DemoFetcher(
                timeout=settings.demo_fetch_timeout_seconds,
                user_agent=settings.fetch_user_agent,
            ),
            scoring_client=ScoringClient.from_settings(settings),
            batch_delay_seconds=settings.batch_delay_seconds,
        )

    async def analyze(self, submission_id: str, *, force: bool = False) -> AnalysisOutcome:
        submission = await self.store.get(submission_id)
        if submission is None:
            logger.warning("Analysis requested for unknown submission %s", submission_id)
            return AnalysisOutcome(AnalysisOutcomeKind.NOT_FOUND, submission_id)

        if submission.ai_analyzed_at is not None and not force:
            logger.info("Submission %s already analyzed, returning stored result", submission_id)
            return AnalysisOutcome(
                AnalysisOutcomeKind.ALREADY_ANALYZED,
                submission_id,
                result=AnalysisResult.from_submission(submission),
            )

        claimable = FORCE_CLAIMABLE_STATUSES if force else TRIGGER_CLAIMABLE_STATUSES
        claimed = await self.store.claim_for_analysis(submission_id, claimable=claimable)
        if claimed is None:
            return await self._claim_refused(submission_id)

        logger.info("Starting analysis for submission %s (force=%s)", submission_id, force)
        try:
            return await self._run(claimed)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while analyzing submission %s", submission_id)
            await self.store.mark_failed(submission_id)
            return AnalysisOutcome(AnalysisOutcomeKind.FAILED, submission_id, error=f"Internal error: {exc.__class__.__name__}")

    async def _claim_refused(self, submission_id: str) -> AnalysisOutcome:
        current = await self.store.get(submission_id)
        if current is None:
            return AnalysisOutcome(AnalysisOutcomeKind.NOT_FOUND, submission_id)
        if current.status == SubmissionStatus.ANALYZING:
            logger.info("Submission %s is already being analyzed", submission_id)
            return AnalysisOutcome(AnalysisOutcomeKind.IN_PROGRESS, submission_id)
        if current.ai_analyzed_at is not None:
            # another run finished between the read and the claim
            return AnalysisOutcome(
                AnalysisOutcomeKind.ALREADY_ANALYZED,
                submission_id,
                result=AnalysisResult.from_submission(current),
            )
        logger.info("Submission %s is not claimable (status=%s)", submission_id, current.status.value)
        return AnalysisOutcome(
            AnalysisOutcomeKind.NOT_CLAIMABLE,
            submission_id,
            error=f"Submission status {current.status.value} cannot be analyzed without a forced run",
        )

    async def _run(self, submission: Submission) -> AnalysisOutcome:
        evidence = await self.gather_evidence(submission)
        rubric = await self.store.get_challenge_rubric(submission.challenge_id)
        content = SubmissionContent(
            repo_url=submission.repo_url,
            deck_url=submission.deck_url,
            demo_url=submission.demo_url,
            writeup_md=submission.writeup_md,
        )
        auto = compute_auto_score(content)

        try:
            scored = await self.scoring_client.score(content, rubric, evidence)
        except ScoringError as exc:
            logger.error("Scoring failed for submission %s: %s", submission.id, exc)
            await self.store.mark_failed(submission.id)
            return AnalysisOutcome(
                AnalysisOutcomeKind.FAILED,
                submission.id,
                error=f"Scoring failed ({exc.kind.value})",
            )

        saved = await self.store.save_analysis(
            submission.id,
            score_llm=scored.score,
            rubric_scores_json=scored.subscores,
            rationale_md=scored.rationale,
            ai_detailed_analysis=scored.detailed_analysis,
            ai_analyzed_at=utcnow(),
            score_auto=auto.score,
            auto_checks_json=auto.checks,
        )
        if saved is None:
            # the claim was released underneath us (stale-claim sweep)
            logger.error("Submission %s lost its analysis claim before results were stored", submission.id)
            return AnalysisOutcome(AnalysisOutcomeKind.FAILED, submission.id, error="Analysis claim lost")

        logger.info("Analysis complete for submission %s: score %s", submission.id, saved.score_llm)
        return AnalysisOutcome(
            AnalysisOutcomeKind.ANALYZED,
            submission.id,
            result=AnalysisResult.from_submission(saved),
        )

    async def gather_evidence(self, submission: Submission) -> str:
        jobs: list[tuple[str, Awaitable[str]]] = []
        blocks: list[str] = []

        if submission.repo_url:
            if is_supported_repo_url(submission.repo_url):
                jobs.append(("repository", self._repository_block(submission.repo_url)))
            else:
                blocks.append(format_repository_unsupported(submission.repo_url))
        if submission.deck_url:
            jobs.append(("deck", self._deck_block(submission.deck_url)))
        if submission.demo_url:
            jobs.append(("demo", self._demo_block(submission.demo_url)))

        results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
        for (source, _), result in zip(jobs, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error("%s fetcher failed for submission %s: %r", source, submission.id, result)
                blocks.append(format_fetch_failure(source))
            else:
                blocks.append(result)
        return "\n".join(blocks)

    async def _repository_block(self, url: str) -> str:
        return format_repository_evidence(await self.repository_fetcher.fetch(url))

    async def _deck_block(self, url: str) -> str:
        return format_deck_evidence(await self.deck_fetcher.fetch(url))

    async def _demo_block(self, url: str) -> str:
        return format_demo_evidence(await self.demo_fetcher.fetch(url))

    async def analyze_batch(self, submission_ids: Sequence[str]) -> BatchSummary:
        summary = BatchSummary()
        for index, submission_id in enumerate(submission_ids):
            try:
                outcome = await self.analyze(submission_id, force=True)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Batch analysis crashed for submission %s", submission_id)
                outcome = AnalysisOutcome(AnalysisOutcomeKind.FAILED, submission_id, error=str(exc) or exc.__class__.__name__)

            if outcome.succeeded:
                summary.successful += 1
                summary.results.append(BatchItem(id=submission_id, success=True))
            else:
                summary.failed += 1
                error = outcome.error or OUTCOME_ERRORS.get(outcome.kind, "Analysis failed")
                summary.results.append(BatchItem(id=submission_id, success=False, error=error))

            if index < len(submission_ids) - 1 and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)

        logger.info("Batch analysis finished: %s successful, %s failed", summary.successful, summary.failed)
        return summary


async def dispatch_analysis(service: AnalysisService, submission_id: str) -> None:
    """Background entry point for fire-and-forget analysis.

    There is no error channel back to the caller; the outcome is observable
    only through the analysis status endpoint.
    """
    try:
        outcome = await service.analyze(submission_id)
    except Exception:  # noqa: BLE001
        logger.exception("Background analysis crashed for submission %s", submission_id)
        return
    logger.info("Background analysis for %s finished: %s", submission_id, outcome.kind.value)
