from enum import Enum


class UserRole(str, Enum):
    BUILDER = "builder"
    JUDGE = "judge"
    SPONSOR = "sponsor"
    ADMIN = "admin"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "ANALYZING"
    ANALYZED = "ANALYZED"
    FAILED = "FAILED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReviewDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SponsorMemberRole(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    MEMBER = "member"


class DeckType(str, Enum):
    GOOGLE_DOCS = "google_docs"
    SLIDES = "slides"
    PDF = "pdf"
    OTHER = "other"


# Statuses a trigger run may claim; a force run may also re-claim finished rows.
TRIGGER_CLAIMABLE_STATUSES = (SubmissionStatus.PENDING, SubmissionStatus.FAILED)
FORCE_CLAIMABLE_STATUSES = TRIGGER_CLAIMABLE_STATUSES + (
    SubmissionStatus.ANALYZED,
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
)
