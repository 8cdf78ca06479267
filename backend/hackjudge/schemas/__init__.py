from .auth import RegisterRequest, LoginRequest, Token
from .profile import ProfilePublic, ProfileUpdate, RoleUpdate
from .challenge import ChallengeCreate, ChallengeUpdate, ChallengePublic
from .submission import SubmissionCreate, SubmissionPublic, SubmissionReviewerView, ReviewRequest
from .analysis import (
    AnalyzeRequest,
    BatchAnalyzeRequest,
    AnalysisPublic,
    AnalyzeOwnerResponse,
    AnalyzeReviewerResponse,
    AnalysisStatusResponse,
    BatchAnalyzeResponse,
)
from .sponsor import SponsorOrgCreate, SponsorOrgPublic, SponsorMemberAdd, SponsorMemberPublic
from .invitation import InvitationCreate, InvitationPublic, InvitationAccept
from .leaderboard import LeaderboardEntry, LeaderboardResponse

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "Token",
    "ProfilePublic",
    "ProfileUpdate",
    "RoleUpdate",
    "ChallengeCreate",
    "ChallengeUpdate",
    "ChallengePublic",
    "SubmissionCreate",
    "SubmissionPublic",
    "SubmissionReviewerView",
    "ReviewRequest",
    "AnalyzeRequest",
    "BatchAnalyzeRequest",
    "AnalysisPublic",
    "AnalyzeOwnerResponse",
    "AnalyzeReviewerResponse",
    "AnalysisStatusResponse",
    "BatchAnalyzeResponse",
    "SponsorOrgCreate",
    "SponsorOrgPublic",
    "SponsorMemberAdd",
    "SponsorMemberPublic",
    "InvitationCreate",
    "InvitationPublic",
    "InvitationAccept",
    "LeaderboardEntry",
    "LeaderboardResponse",
]
