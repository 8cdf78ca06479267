import asyncio

import httpx
import pytest

from hackjudge.analysis.github import RepositoryFetcher, is_supported_repo_url, parse_github_url
from hackjudge.analysis.http import TRUNCATION_MARKER

REPO_METADATA = {
    "language": "Python",
    "stargazers_count": 5,
    "forks_count": 1,
    "open_issues_count": 2,
    "description": "Submission triage assistant",
    "default_branch": "main",
    "updated_at": "2024-05-01T10:00:00Z",
}

TREE = {
    "tree": [
        {"path": "README.md", "type": "blob"},
        {"path": "requirements.txt", "type": "blob"},
        {"path": "app.py", "type": "blob"},
        {"path": "tests", "type": "tree"},
        {"path": "tests/test_app.py", "type": "blob"},
    ]
}

RAW_FILES = {
    "README.md": "# Triage assistant\nScores submissions.",
    "requirements.txt": "fastapi\nhttpx\n",
    "app.py": "from fastapi import FastAPI\napp = FastAPI()\n",
}


def github_handler(raw_files=RAW_FILES, tree=TREE, metadata=REPO_METADATA):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == "https://api.github.com/repos/u/r":
            return httpx.Response(200, json=metadata)
        if url.startswith("https://api.github.com/repos/u/r/git/trees/main"):
            if tree is None:
                return httpx.Response(404)
            return httpx.Response(200, json=tree)
        prefix = "https://raw.githubusercontent.com/u/r/main/"
        if url.startswith(prefix) and url[len(prefix):] in raw_files:
            return httpx.Response(200, text=raw_files[url[len(prefix):]])
        return httpx.Response(404)

    return handler


def make_fetcher(handler, **kwargs) -> RepositoryFetcher:
    return RepositoryFetcher(
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://github.com/u/r", ("u", "r")),
        ("https://github.com/u/r.git", ("u", "r")),
        ("http://www.github.com/u/r/tree/main/src", ("u", "r")),
        ("github.com/u/r/", ("u", "r")),
        ("https://gitlab.com/u/r", None),
        ("https://github.com/u", None),
        ("", None),
    ],
)
def test_parse_github_url(url, expected):
    assert parse_github_url(url) == expected
    assert is_supported_repo_url(url) is (expected is not None)


@pytest.mark.asyncio
async def test_fetch_collects_stats_and_key_files():
    evidence = await make_fetcher(github_handler()).fetch("https://github.com/u/r")

    assert evidence.accessible is True
    assert evidence.error is None
    assert evidence.stats.language == "Python"
    assert evidence.stats.stars == 5
    assert evidence.files["readme"].startswith("# Triage assistant")
    assert evidence.files["requirements_txt"] == "fastapi\nhttpx\n"
    assert evidence.main_source_path == "app.py"
    assert evidence.test_paths == ["tests/test_app.py"]
    assert "package_json" not in evidence.files
    assert "Found 4/8 key files" in evidence.summary
    assert "Tech stack: Python" in evidence.summary
    assert "Last updated: 2024-05-01" in evidence.summary


@pytest.mark.asyncio
async def test_fetch_without_tree_falls_back_to_known_paths():
    evidence = await make_fetcher(github_handler(tree=None)).fetch("https://github.com/u/r")

    assert evidence.accessible is True
    assert evidence.main_source_path == "app.py"
    assert "readme" in evidence.files
    assert evidence.test_paths == []


@pytest.mark.asyncio
async def test_large_files_are_truncated():
    handler = github_handler(raw_files={"README.md": "x" * 20_000})
    evidence = await make_fetcher(handler, max_file_bytes=100).fetch("https://github.com/u/r")

    readme = evidence.files["readme"]
    assert readme.endswith(TRUNCATION_MARKER)
    assert len(readme) == 100 + len(TRUNCATION_MARKER)


@pytest.mark.asyncio
async def test_missing_repository_is_reported_not_raised():
    evidence = await make_fetcher(lambda request: httpx.Response(404)).fetch("https://github.com/u/r")

    assert evidence.accessible is False
    assert evidence.error == "HTTP 404"
    assert evidence.summary == "Repository not found or not public"


@pytest.mark.asyncio
async def test_unparseable_url():
    evidence = await make_fetcher(github_handler()).fetch("https://gitlab.com/u/r")

    assert evidence.accessible is False
    assert evidence.error == "Could not parse GitHub URL"


@pytest.mark.asyncio
async def test_timeout_is_reported_not_raised():
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=REPO_METADATA)

    evidence = await make_fetcher(slow, timeout=0.05).fetch("https://github.com/u/r")

    assert evidence.accessible is False
    assert evidence.error == "Timeout (>0.05s)"


@pytest.mark.asyncio
async def test_connection_error_is_reported_not_raised():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    evidence = await make_fetcher(refuse).fetch("https://github.com/u/r")

    assert evidence.accessible is False
    assert evidence.error == "connection refused"


@pytest.mark.asyncio
async def test_invalid_metadata_json_is_reported_not_raised():
    def broken(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    evidence = await make_fetcher(broken).fetch("https://github.com/u/r")

    assert evidence.accessible is False
    assert evidence.error


@pytest.mark.asyncio
async def test_token_is_sent_to_the_api_only():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen[str(request.url)] = request.headers.get("authorization")
        return github_handler()(request)

    await make_fetcher(handler, token="secret").fetch("https://github.com/u/r")

    assert seen["https://api.github.com/repos/u/r"] == "Bearer secret"
    assert seen["https://raw.githubusercontent.com/u/r/main/README.md"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("metadata", [[], ["u/r"], "repository", 42])
async def test_non_object_metadata_is_reported_not_raised(metadata):
    evidence = await make_fetcher(github_handler(metadata=metadata)).fetch("https://github.com/u/r")

    assert evidence.accessible is False
    assert evidence.summary == "Unexpected response from the GitHub API"
    assert evidence.error.startswith("Repository metadata is a JSON")


@pytest.mark.asyncio
async def test_malformed_metadata_fields_are_coerced():
    metadata = {
        **REPO_METADATA,
        "stargazers_count": {"a": 1},
        "forks_count": "lots",
        "open_issues_count": None,
        "language": ["Python"],
    }

    evidence = await make_fetcher(github_handler(metadata=metadata)).fetch("https://github.com/u/r")

    assert evidence.accessible is True
    assert evidence.stats.stars == 0
    assert evidence.stats.forks == 0
    assert evidence.stats.open_issues == 0
    assert evidence.stats.language is None
    assert "Tech stack: Python" in evidence.summary


@pytest.mark.asyncio
@pytest.mark.parametrize("tree", [{"tree": ["README.md", "app.py"]}, {"tree": "README.md"}, ["README.md"]])
async def test_malformed_tree_falls_back_to_known_paths(tree):
    evidence = await make_fetcher(github_handler(tree=tree)).fetch("https://github.com/u/r")

    assert evidence.accessible is True
    assert "readme" in evidence.files
    assert evidence.main_source_path == "app.py"
