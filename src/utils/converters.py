"""Conversions between ORM models and pydantic schemas."""

from models.issue import IssueModel
from models.user import UserModel
from schemas.issue import (
    Comment,
    CommentAuthor,
    Coordinates,
    Issue,
    Location,
    ReporterSummary,
)
from schemas.user import User


def user_to_model(user: User) -> UserModel:
    return UserModel(
        user_id=user.user_id,
        name=user.name,
        email=user.email,
        password_hash=user.password_hash,
        role=user.role,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def model_to_user(model: UserModel) -> User:
    return User(
        user_id=model.user_id,
        name=model.name,
        email=model.email,
        password_hash=model.password_hash,
        role=model.role,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def model_to_issue(model: IssueModel) -> Issue:
    """Build the API representation of an issue, denormalizing user names."""
    reporter = model.reporter
    return Issue(
        issue_id=model.id,
        title=model.title,
        description=model.description,
        category=model.category,
        status=model.status,
        location=Location(
            address=model.address,
            coordinates=Coordinates(lat=model.latitude, lng=model.longitude),
        ),
        images=list(model.images or []),
        reporter=ReporterSummary(
            user_id=reporter.user_id, name=reporter.name, email=reporter.email
        ),
        upvotes=model.upvotes,
        upvoted_by=[entry.user_id for entry in model.upvote_entries],
        comments=[
            Comment(
                comment_id=comment.id,
                user=CommentAuthor(user_id=comment.user.user_id, name=comment.user.name),
                text=comment.text,
                created_at=comment.created_at,
            )
            for comment in model.comments
        ],
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
