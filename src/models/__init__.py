from .base import Base
from .user import UserModel
from .issue import IssueModel
from .issue_upvote import IssueUpvoteModel
from .issue_comment import IssueCommentModel

__all__ = [
    "Base",
    "UserModel",
    "IssueModel",
    "IssueUpvoteModel",
    "IssueCommentModel",
]
