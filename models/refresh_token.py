"""
RefreshToken model: one row per rotation chain.

Fields:
- token_hash: sha256 of the current secret (the secret itself is never stored)
- user_id (String(36)) - FK to users.id
- revoked / revoked_at
- expires_at
- ip, user_agent: request metadata of the last issue/rotation

RefreshTokenHistory keeps every hash a chain has retired, so a secret
presented after rotation (however many generations back) is traced to its
chain instead of looking unknown.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    ip = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"


class RefreshTokenHistory(BaseModel, Base):
    __tablename__ = "refresh_token_history"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    record_id = Column(String(36), ForeignKey("refresh_tokens.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<RefreshTokenHistory record_id={self.record_id}>"
