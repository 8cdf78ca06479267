from .autoscore import AutoScore, compute_auto_score
from .demo import DemoFetcher
from .evidence import DeckEvidence, DemoEvidence, RepositoryEvidence, RepositoryStats
from .github import RepositoryFetcher, is_supported_repo_url, parse_github_url
from .pitch_deck import PitchDeckFetcher, detect_deck_type
from .scoring import (
    DEFAULT_RUBRIC,
    RubricDimension,
    ScoreResult,
    ScoringClient,
    ScoringError,
    ScoringErrorKind,
    SubmissionContent,
    resolve_rubric,
)

__all__ = [
    "AutoScore",
    "compute_auto_score",
    "DemoFetcher",
    "DeckEvidence",
    "DemoEvidence",
    "RepositoryEvidence",
    "RepositoryStats",
    "RepositoryFetcher",
    "is_supported_repo_url",
    "parse_github_url",
    "PitchDeckFetcher",
    "detect_deck_type",
    "DEFAULT_RUBRIC",
    "RubricDimension",
    "ScoreResult",
    "ScoringClient",
    "ScoringError",
    "ScoringErrorKind",
    "SubmissionContent",
    "resolve_rubric",
]
