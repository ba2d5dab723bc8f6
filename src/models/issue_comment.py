from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base


class IssueCommentModel(Base):
    __tablename__ = "issue_comments"

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(
        Integer, ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id = Column(String, ForeignKey("users.user_id"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(String, nullable=False)  # ISO format string

    issue = relationship("IssueModel", back_populates="comments")
    user = relationship("UserModel")
