from dataclasses import dataclass, field
from typing import Optional

from ..enums import DeckType

# Keys of the repository files the fetcher looks for, in report order.
REPOSITORY_KEY_FILES = (
    "readme",
    "package_json",
    "requirements_txt",
    "pyproject_toml",
    "main_source",
    "tests",
    "env_example",
    "license",
)


@dataclass
class RepositoryStats:
    language: Optional[str]
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    description: Optional[str] = None
    default_branch: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class RepositoryEvidence:
    url: str
    accessible: bool
    summary: str
    stats: Optional[RepositoryStats] = None
    files: dict[str, str] = field(default_factory=dict)
    main_source_path: Optional[str] = None
    test_paths: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def has_file(self, key: str) -> bool:
        return key in self.files

    @property
    def found_count(self) -> int:
        return sum(1 for key in REPOSITORY_KEY_FILES if key in self.files)


@dataclass
class DeckEvidence:
    url: str
    accessible: bool
    deck_type: DeckType
    content_extracted: bool
    summary: str
    text_content: Optional[str] = None
    size_bytes: Optional[int] = None
    error: Optional[str] = None


@dataclass
class DemoEvidence:
    url: str
    is_live: bool
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    tech_hints: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def accessible(self) -> bool:
        return self.is_live
