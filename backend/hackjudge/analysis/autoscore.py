from dataclasses import dataclass, field

from .scoring import SubmissionContent

POINTS_PER_CHECK = 5
MIN_WRITEUP_CHARS = 400
MAX_AUTO_SCORE = 4 * POINTS_PER_CHECK


@dataclass
class AutoScore:
    score: int
    checks: dict[str, bool | int] = field(default_factory=dict)


def compute_auto_score(content: SubmissionContent) -> AutoScore:
    """Completeness score (0-20): five points per artifact the builder supplied.

    The write-up only counts once it reaches ``MIN_WRITEUP_CHARS``.
    """
    writeup_length = len(content.writeup_md or "")
    checks: dict[str, bool | int] = {
        "has_repo": bool(content.repo_url),
        "has_deck": bool(content.deck_url),
        "has_demo": bool(content.demo_url),
        "has_writeup": writeup_length >= MIN_WRITEUP_CHARS,
        "writeup_length": writeup_length,
    }
    passed = sum(1 for key in ("has_repo", "has_deck", "has_demo", "has_writeup") if checks[key])
    return AutoScore(score=passed * POINTS_PER_CHECK, checks=checks)
