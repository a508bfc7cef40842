"""
RefreshToken model: opaque refresh tokens handed out at login.
Fields:
- token (unique opaque string)
- user_id (Integer) - id of the owning user, deliberately without a foreign key
- revoked (bool, only ever goes False -> True)
- created_at, expires_at (naive UTC)

Rows are never physically deleted, not even with their user; revoked and
expired rows stay for audit.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(Integer, nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)

    user = relationship(
        "User",
        primaryjoin="foreign(RefreshToken.user_id) == User.id",
        back_populates="refresh_tokens",
    )

    def __repr__(self):
        # never print the token itself
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"
