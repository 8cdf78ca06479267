import asyncio
import logging
import re
from datetime import datetime
from typing import Optional

import httpx

from .evidence import REPOSITORY_KEY_FILES, RepositoryEvidence, RepositoryStats
from .http import ClientFactory, default_client_factory, describe_error, read_capped_text

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"^(?:https?://)?(?:www\.)?github\.com/([^/\s?#]+)/([^/\s?#]+)", re.IGNORECASE)

MAX_FILE_BYTES = 10_000

# Single files fetched by exact path.
FIXED_FILES = {
    "readme": ("README.md", "readme.md", "README.rst", "README"),
    "package_json": ("package.json",),
    "requirements_txt": ("requirements.txt",),
    "pyproject_toml": ("pyproject.toml",),
    "env_example": (".env.example", ".env.sample"),
    "license": ("LICENSE", "LICENSE.md", "LICENSE.txt"),
}

MAIN_SOURCE_CANDIDATES = (
    "main.py", "app.py", "run.py", "server.py", "api.py", "src/main.py", "src/app.py",
    "index.js", "app.js", "server.js", "main.js", "src/index.js", "src/app.js",
    "index.ts", "app.ts", "server.ts", "main.ts", "src/index.ts", "src/app.ts",
    "pages/index.tsx", "pages/index.js", "app/page.tsx", "app/page.js",
    "src/App.tsx", "src/App.jsx", "src/App.js",
    "Main.java", "App.java", "src/main/java/Main.java",
    "main.go", "cmd/main.go",
    "main.rs", "src/main.rs",
)

TEST_FILE_CANDIDATES = (
    "test.py", "test_main.py", "tests/test_main.py", "tests/test_app.py",
    "test.js", "test.ts", "app.test.js", "app.test.ts",
    "src/App.test.tsx", "src/App.test.jsx",
    "__tests__/index.test.js", "__tests__/app.test.js",
)

TEST_PATH_PATTERN = re.compile(r"(^|/)(tests?|__tests__|spec)/|(^|/)test_[^/]+\.py$|\.(test|spec)\.[jt]sx?$|_test\.go$")


def parse_github_url(url: str | None) -> Optional[tuple[str, str]]:
    if not url:
        return None
    cleaned = url.strip().rstrip("/")
    match = GITHUB_URL_PATTERN.match(cleaned)
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def is_supported_repo_url(url: str | None) -> bool:
    return parse_github_url(url) is not None


def _infer_tech_stack(files: dict[str, str], stats: RepositoryStats) -> str:
    if "package_json" in files:
        return "JavaScript/TypeScript (Node.js)"
    if "requirements_txt" in files or "pyproject_toml" in files:
        return "Python"
    return stats.language or "Unknown"


def _as_count(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_text(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _format_date(value: str | None) -> str:
    if not value:
        return "unknown"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


class RepositoryFetcher:
    """Collects repository metadata and a bounded set of key files from GitHub."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        api_base: str = "https://api.github.com",
        raw_base: str = "https://raw.githubusercontent.com",
        token: str | None = None,
        user_agent: str = "HackJudge-Bot/1.0",
        max_file_bytes: int = MAX_FILE_BYTES,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.raw_base = raw_base.rstrip("/")
        self.token = token
        self.max_file_bytes = max_file_bytes
        self.client_factory = client_factory or default_client_factory(user_agent, timeout)

    async def fetch(self, repo_url: str) -> RepositoryEvidence:
        parsed = parse_github_url(repo_url)
        if not parsed:
            return RepositoryEvidence(
                url=repo_url,
                accessible=False,
                summary="Invalid GitHub URL format",
                error="Could not parse GitHub URL",
            )

        owner, repo = parsed
        logger.info("Fetching repository evidence for %s/%s", owner, repo)
        try:
            async with self.client_factory() as client:
                return await asyncio.wait_for(self._collect(client, repo_url, owner, repo), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Repository fetch timed out for %s", repo_url)
            return RepositoryEvidence(
                url=repo_url,
                accessible=False,
                summary="Repository analysis timed out",
                error=f"Timeout (>{self.timeout:g}s)",
            )
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Repository fetch failed for %s: %s", repo_url, exc)
            return RepositoryEvidence(
                url=repo_url,
                accessible=False,
                summary="Error analyzing repository",
                error=describe_error(exc),
            )

    def _api_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _collect(self, client: httpx.AsyncClient, repo_url: str, owner: str, repo: str) -> RepositoryEvidence:
        response = await client.get(f"{self.api_base}/repos/{owner}/{repo}", headers=self._api_headers())
        if response.status_code != 200:
            return RepositoryEvidence(
                url=repo_url,
                accessible=False,
                summary="Repository not found or not public",
                error=f"HTTP {response.status_code}",
            )

        data = response.json()
        if not isinstance(data, dict):
            return RepositoryEvidence(
                url=repo_url,
                accessible=False,
                summary="Unexpected response from the GitHub API",
                error=f"Repository metadata is a JSON {type(data).__name__}, not an object",
            )
        stats = RepositoryStats(
            language=_as_text(data.get("language")),
            stars=_as_count(data.get("stargazers_count")),
            forks=_as_count(data.get("forks_count")),
            open_issues=_as_count(data.get("open_issues_count")),
            description=_as_text(data.get("description")),
            default_branch=_as_text(data.get("default_branch")),
            created_at=_as_text(data.get("created_at")),
            updated_at=_as_text(data.get("updated_at")),
        )
        branches = [b for b in dict.fromkeys((stats.default_branch, "main", "master")) if b]
        tree = await self._list_tree(client, owner, repo, branches[0])

        files: dict[str, str] = {}
        fixed_keys = list(FIXED_FILES)
        fixed_results = await asyncio.gather(
            *(self._fetch_first(client, owner, repo, branches, FIXED_FILES[key], tree) for key in fixed_keys)
        )
        for key, result in zip(fixed_keys, fixed_results):
            if result:
                files[key] = result[1]

        main_source_path: str | None = None
        main_source = await self._fetch_first(client, owner, repo, branches, MAIN_SOURCE_CANDIDATES, tree)
        if main_source:
            main_source_path, files["main_source"] = main_source

        test_paths = sorted(path for path in tree if TEST_PATH_PATTERN.search(path)) if tree else []
        if test_paths:
            files["tests"] = "\n".join(test_paths[:20])
        else:
            test_file = await self._fetch_first(client, owner, repo, branches, TEST_FILE_CANDIDATES, tree)
            if test_file:
                test_paths = [test_file[0]]
                files["tests"] = test_file[1]

        evidence = RepositoryEvidence(
            url=repo_url,
            accessible=True,
            summary="",
            stats=stats,
            files=files,
            main_source_path=main_source_path,
            test_paths=test_paths,
        )
        evidence.summary = (
            f"Repository analyzed successfully. Found {evidence.found_count}/{len(REPOSITORY_KEY_FILES)} key files. "
            f"Tech stack: {_infer_tech_stack(files, stats)}. Last updated: {_format_date(stats.updated_at)}."
        )
        logger.info("Repository %s/%s: %s", owner, repo, evidence.summary)
        return evidence

    async def _list_tree(self, client: httpx.AsyncClient, owner: str, repo: str, branch: str) -> set[str] | None:
        try:
            response = await client.get(
                f"{self.api_base}/repos/{owner}/{repo}/git/trees/{branch}",
                params={"recursive": "1"},
                headers=self._api_headers(),
            )
            if response.status_code != 200:
                return None
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Tree listing failed for %s/%s: %s", owner, repo, exc)
            return None
        entries = payload.get("tree") if isinstance(payload, dict) else None
        if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
            # unusable listing; fall back to probing candidate paths directly
            return None
        return {entry["path"] for entry in entries if entry.get("type") == "blob" and isinstance(entry.get("path"), str)}

    async def _fetch_first(
        self,
        client: httpx.AsyncClient,
        owner: str,
        repo: str,
        branches: list[str],
        candidates: tuple[str, ...],
        tree: set[str] | None,
    ) -> tuple[str, str] | None:
        # With a tree listing only paths that exist are requested.
        paths = [path for path in candidates if path in tree] if tree is not None else list(candidates)
        for path in paths:
            content = await self._fetch_raw(client, owner, repo, branches, path)
            if content is not None:
                return path, content
        return None

    async def _fetch_raw(
        self, client: httpx.AsyncClient, owner: str, repo: str, branches: list[str], path: str
    ) -> str | None:
        for branch in branches:
            url = f"{self.raw_base}/{owner}/{repo}/{branch}/{path}"
            try:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        continue
                    return await read_capped_text(response, self.max_file_bytes)
            except httpx.HTTPError as exc:
                logger.debug("Raw fetch failed for %s: %s", url, exc)
        return None
