from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    # stored lower-cased, so the unique index is case-insensitive in practice
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    role = Column(String(32), nullable=False, default="user")
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_hash = Column(String(64), nullable=True, unique=True, index=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User id={self.id} email={self.email}>"
