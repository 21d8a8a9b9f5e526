from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.quoteboard.models import Base, User


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (
        Index("idx_quotes_group_id", "group_id"),
        Index("idx_quotes_subject_user_id", "subject_user_id"),
        Index("idx_quotes_submitter_user_id", "submitter_user_id"),
        Index("idx_quotes_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    # Who said it / who logged it
    subject_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    submitter_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    # Visibility scope, fixed at insert time
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="RESTRICT"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    subject: Mapped[User] = relationship(foreign_keys=[subject_user_id], lazy="joined")
    submitter: Mapped[User] = relationship(foreign_keys=[submitter_user_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "subjectUserId": self.subject_user_id,
            "subjectName": self.subject.display_name if self.subject else None,
            "submitterUserId": self.submitter_user_id,
            "submitterName": self.submitter.display_name if self.submitter else None,
            "groupId": self.group_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
