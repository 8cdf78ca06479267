from datetime import timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from hackjudge.analysis.scoring import ScoringClient
from hackjudge.database import build_engine, create_schema, get_session
from hackjudge.dependencies import get_analysis_service
from hackjudge.enums import UserRole
from hackjudge.main import create_app
from hackjudge.models import Challenge, Profile, Submission
from hackjudge.security import create_access_token
from hackjudge.services.analysis_service import AnalysisService
from hackjudge.services.submission_store import SubmissionStore
from hackjudge.timeutils import utcnow

from fakes import FakeOpenAI, StubDeckFetcher, StubDemoFetcher, StubRepositoryFetcher


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return SubmissionStore(session_factory)


@pytest.fixture
def create_profile(session_factory):
    async def _create(role=UserRole.BUILDER, email=None, display_name=None):
        async with session_factory() as session:
            count = (await session.execute(select(func.count()).select_from(Profile))).scalar_one()
            profile = Profile(
                email=email or f"user{count}@example.com",
                display_name=display_name or f"User {count}",
                hashed_password="unused",
                role=role,
            )
            session.add(profile)
            await session.commit()
            await session.refresh(profile)
            return profile

    return _create


@pytest_asyncio.fixture
async def builder(create_profile):
    return await create_profile(UserRole.BUILDER, email="builder@example.com", display_name="Builder")


@pytest_asyncio.fixture
async def other_builder(create_profile):
    return await create_profile(UserRole.BUILDER, email="other@example.com", display_name="Other")


@pytest_asyncio.fixture
async def judge(create_profile):
    return await create_profile(UserRole.JUDGE, email="judge@example.com", display_name="Judge")


@pytest_asyncio.fixture
async def admin(create_profile):
    return await create_profile(UserRole.ADMIN, email="admin@example.com", display_name="Admin")


@pytest_asyncio.fixture
async def challenge(session_factory, admin):
    async with session_factory() as session:
        item = Challenge(
            title="Build an AI assistant",
            brief_md="Help judges triage submissions.",
            deadline_utc=utcnow() + timedelta(days=7),
            created_by=admin.id,
        )
        session.add(item)
        await session.commit()
        await session.refresh(item)
        return item


@pytest.fixture
def create_submission(session_factory, challenge, builder):
    async def _create(**overrides):
        values = {
            "user_id": builder.id,
            "challenge_id": challenge.id,
            "repo_url": "https://github.com/u/r",
            "demo_url": "https://example.com",
            "writeup_md": "We built an assistant that reviews code.",
        }
        values.update(overrides)
        async with session_factory() as session:
            submission = Submission(**values)
            session.add(submission)
            await session.commit()
            await session.refresh(submission)
            return submission

    return _create


@pytest.fixture
def fake_llm():
    return FakeOpenAI()


@pytest.fixture
def fetchers():
    return SimpleNamespace(
        repository=StubRepositoryFetcher(),
        deck=StubDeckFetcher(),
        demo=StubDemoFetcher(),
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(store, fetchers, fake_llm, sleeps):
    async def record_sleep(delay):
        sleeps.append(delay)

    return AnalysisService(
        store,
        repository_fetcher=fetchers.repository,
        deck_fetcher=fetchers.deck,
        demo_fetcher=fetchers.demo,
        scoring_client=ScoringClient(fake_llm, model="test-model"),
        batch_delay_seconds=1.0,
        sleep=record_sleep,
    )


@pytest.fixture
def app(session_factory, service):
    application = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session] = override_session
    application.dependency_overrides[get_analysis_service] = lambda: service
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def auth_headers():
    def _headers(profile):
        return {"Authorization": f"Bearer {create_access_token(profile.id)}"}

    return _headers
