from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class IssueUpvoteModel(Base):
    __tablename__ = "issue_upvotes"

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id = Column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False
    )
    created_at = Column(String, nullable=False)

    issue = relationship("IssueModel", back_populates="upvote_entries")

    # One upvote per user per issue
    __table_args__ = (
        UniqueConstraint("issue_id", "user_id", name="uq_issue_upvotes_issue_user"),
    )
