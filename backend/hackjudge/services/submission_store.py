from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from ..enums import SubmissionStatus
from ..models import Challenge, Submission
from ..timeutils import utcnow


class SubmissionStore:
    """Row-level access to submissions for the analysis pipeline.

    Every call runs in its own short session so no transaction is held open
    while the pipeline waits on external services.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    async def get(self, submission_id: str) -> Submission | None:
        async with self.session_factory() as session:
            return await session.get(Submission, submission_id)

    async def get_challenge_rubric(self, challenge_id: str) -> dict | None:
        async with self.session_factory() as session:
            result = await session.execute(select(Challenge.rubric).where(Challenge.id == challenge_id))
            return result.scalar_one_or_none()

    async def _conditional_update(
        self,
        session: AsyncSession,
        submission_id: str,
        allowed: Iterable[SubmissionStatus],
        values: dict[str, Any],
    ) -> bool:
        statement = (
            sa_update(Submission)
            .where(Submission.id == submission_id)
            .where(Submission.status.in_(list(allowed)))
            .values(**values, updated_at=utcnow())
        )
        result = await session.execute(statement)
        await session.commit()
        return result.rowcount == 1

    async def claim_for_analysis(
        self, submission_id: str, *, claimable: Iterable[SubmissionStatus]
    ) -> Submission | None:
        """Move the row to ANALYZING if its status is claimable.

        Returns the post-update row, or None when another run holds the claim
        or the row is not claimable.
        """
        async with self.session_factory() as session:
            claimed = await self._conditional_update(
                session,
                submission_id,
                claimable,
                {"status": SubmissionStatus.ANALYZING, "analysis_started_at": utcnow()},
            )
            if not claimed:
                return None
            return await session.get(Submission, submission_id, populate_existing=True)

    async def save_analysis(
        self,
        submission_id: str,
        *,
        score_llm: float,
        rubric_scores_json: dict[str, float],
        rationale_md: str,
        ai_detailed_analysis: Any,
        ai_analyzed_at: datetime,
        score_auto: float | None = None,
        auto_checks_json: dict[str, Any] | None = None,
    ) -> Submission | None:
        async with self.session_factory() as session:
            saved = await self._conditional_update(
                session,
                submission_id,
                (SubmissionStatus.ANALYZING,),
                {
                    "status": SubmissionStatus.ANALYZED,
                    "score_llm": score_llm,
                    "rubric_scores_json": rubric_scores_json,
                    "rationale_md": rationale_md,
                    "ai_detailed_analysis": ai_detailed_analysis,
                    "ai_analyzed_at": ai_analyzed_at,
                    "score_auto": score_auto,
                    "auto_checks_json": auto_checks_json,
                },
            )
            if not saved:
                return None
            return await session.get(Submission, submission_id, populate_existing=True)

    async def mark_failed(self, submission_id: str) -> bool:
        async with self.session_factory() as session:
            return await self._conditional_update(
                session,
                submission_id,
                (SubmissionStatus.ANALYZING,),
                {"status": SubmissionStatus.FAILED},
            )

    async def release_stale_claims(self, *, cutoff: datetime) -> int:
        async with self.session_factory() as session:
            statement = (
                sa_update(Submission)
                .where(Submission.status == SubmissionStatus.ANALYZING)
                .where(Submission.analysis_started_at < cutoff)
                .values(status=SubmissionStatus.FAILED, updated_at=utcnow())
            )
            result = await session.execute(statement)
            await session.commit()
            return result.rowcount or 0
