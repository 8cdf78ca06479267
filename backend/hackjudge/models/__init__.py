from .profile import Profile
from .sponsor import SponsorOrg, SponsorMember
from .challenge import Challenge
from .submission import Submission
from .invitation import Invitation

__all__ = [
    "Profile",
    "SponsorOrg",
    "SponsorMember",
    "Challenge",
    "Submission",
    "Invitation",
]
