from datetime import timedelta

import pytest

from hackjudge.database import get_session
from hackjudge.enums import TRIGGER_CLAIMABLE_STATUSES, SubmissionStatus
from hackjudge.models import Challenge, Submission
from hackjudge.timeutils import utcnow


@pytest.mark.asyncio
async def test_create_submission_dispatches_analysis(client, store, fake_llm, builder, challenge, auth_headers):
    response = await client.post(
        "/api/submissions",
        json={
            "challenge_id": challenge.id,
            "repo_url": "https://github.com/u/r",
            "writeup_md": "  A tool for judges.  ",
        },
        headers=auth_headers(builder),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == SubmissionStatus.PENDING.value
    assert body["writeup_md"] == "A tool for judges."
    assert "score_llm" not in body

    # background task has run by the time the ASGI call returns
    stored = await store.get(body["id"])
    assert stored.status == SubmissionStatus.ANALYZED
    assert len(fake_llm.completions.calls) == 1


@pytest.mark.asyncio
async def test_create_submission_requires_repo_or_writeup(client, builder, challenge, auth_headers):
    response = await client.post(
        "/api/submissions",
        json={"challenge_id": challenge.id, "demo_url": "https://example.com"},
        headers=auth_headers(builder),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_submission_rejects_non_http_urls(client, builder, challenge, auth_headers):
    response = await client.post(
        "/api/submissions",
        json={"challenge_id": challenge.id, "repo_url": "ftp://github.com/u/r"},
        headers=auth_headers(builder),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_submission_after_deadline(client, session_factory, builder, admin, auth_headers):
    async with session_factory() as session:
        closed = Challenge(title="Closed", deadline_utc=utcnow() - timedelta(hours=1), created_by=admin.id)
        session.add(closed)
        await session.commit()
        await session.refresh(closed)

    response = await client.post(
        "/api/submissions",
        json={"challenge_id": closed.id, "writeup_md": "Late entry"},
        headers=auth_headers(builder),
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "The challenge deadline has passed."


@pytest.mark.asyncio
async def test_owner_view_hides_ai_fields(client, service, builder, judge, other_builder, auth_headers, create_submission):
    submission = await create_submission()
    await service.analyze(submission.id)
    url = f"/api/submissions/{submission.id}"

    owner_body = (await client.get(url, headers=auth_headers(builder))).json()
    judge_body = (await client.get(url, headers=auth_headers(judge))).json()
    other = await client.get(url, headers=auth_headers(other_builder))

    assert owner_body["status"] == SubmissionStatus.ANALYZED.value
    assert owner_body["ai_analyzed_at"] is not None
    for hidden in ("score_llm", "rubric_scores_json", "rationale_md", "ai_detailed_analysis"):
        assert hidden not in owner_body
    assert judge_body["score_llm"] == 72.0
    assert judge_body["rationale_md"] == "Solid implementation with a working demo."
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_list_mine_and_reviewer_listing(client, builder, other_builder, judge, challenge, auth_headers, create_submission):
    mine = await create_submission()
    await create_submission(user_id=other_builder.id)

    my_list = (await client.get("/api/submissions/mine", headers=auth_headers(builder))).json()
    reviewer_list = await client.get("/api/submissions", params={"challenge_id": challenge.id}, headers=auth_headers(judge))
    builder_list = await client.get("/api/submissions", headers=auth_headers(builder))

    assert [item["id"] for item in my_list] == [mine.id]
    assert reviewer_list.status_code == 200
    assert len(reviewer_list.json()) == 2
    assert builder_list.status_code == 403


@pytest.mark.asyncio
async def test_review_records_decision(client, store, judge, builder, auth_headers, create_submission):
    submission = await create_submission()

    response = await client.post(
        f"/api/submissions/{submission.id}/review",
        json={"status": "APPROVED", "score": 88, "feedback": "Great work"},
        headers=auth_headers(judge),
    )
    forbidden = await client.post(
        f"/api/submissions/{submission.id}/review",
        json={"status": "APPROVED", "score": 100},
        headers=auth_headers(builder),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "APPROVED"
    assert body["judge_score"] == 88
    assert body["reviewed_by"] == judge.id
    assert forbidden.status_code == 403
    assert (await store.get(submission.id)).judge_feedback == "Great work"


@pytest.mark.asyncio
async def test_review_does_not_overwrite_a_claim_taken_after_it_was_read(
    app, client, session_factory, store, judge, auth_headers, create_submission
):
    submission = await create_submission()

    async def claiming_session():
        async with session_factory() as session:
            load = session.get

            async def get_then_claim(entity, ident, **kwargs):
                row = await load(entity, ident, **kwargs)
                if entity is Submission:
                    await store.claim_for_analysis(ident, claimable=TRIGGER_CLAIMABLE_STATUSES)
                return row

            session.get = get_then_claim
            yield session

    app.dependency_overrides[get_session] = claiming_session

    response = await client.post(
        f"/api/submissions/{submission.id}/review",
        json={"status": "APPROVED", "score": 90},
        headers=auth_headers(judge),
    )

    assert response.status_code == 409
    stored = await store.get(submission.id)
    assert stored.status == SubmissionStatus.ANALYZING
    assert stored.judge_score is None


@pytest.mark.asyncio
async def test_review_score_out_of_range(client, judge, auth_headers, create_submission):
    submission = await create_submission()

    response = await client.post(
        f"/api/submissions/{submission.id}/review",
        json={"status": "REJECTED", "score": 101},
        headers=auth_headers(judge),
    )

    assert response.status_code == 400
