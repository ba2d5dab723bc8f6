"""Issue database model.

Comments and upvote memberships live in their own tables keyed by issue_id;
the ``upvotes`` column caches the membership count.
"""

from sqlalchemy import Column, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .base import Base


class IssueModel(Base):
    """Issue database model."""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="reported", index=True)

    address = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    images = Column(JSON, nullable=False, default=list)  # ordered list of URLs

    reporter_id = Column(
        String, ForeignKey("users.user_id"), nullable=False, index=True
    )
    upvotes = Column(Integer, nullable=False, default=0)

    created_at = Column(String, nullable=False, index=True)  # ISO format string
    updated_at = Column(String, nullable=False)  # ISO format string

    reporter = relationship("UserModel")
    upvote_entries = relationship(
        "IssueUpvoteModel",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueUpvoteModel.id",
    )
    comments = relationship(
        "IssueCommentModel",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueCommentModel.id",
    )
