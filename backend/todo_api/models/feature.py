"""
Feature definition and entitlement override models.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from todo_api.core.database import Base


class FeatureDefinition(Base):
    __tablename__ = "feature_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    enabled_by_default = Column(Boolean, default=True, nullable=False)
    available_from = Column(DateTime(timezone=True), nullable=True)
    available_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user_flags = relationship("UserFeatureFlag", back_populates="feature", cascade="all, delete-orphan")
    role_access = relationship("RoleFeatureAccess", back_populates="feature", cascade="all, delete-orphan")

    @property
    def is_time_restricted(self) -> bool:
        return self.available_from is not None or self.available_until is not None


class RoleFeatureAccess(Base):
    __tablename__ = "role_feature_access"

    id = Column(Integer, primary_key=True, index=True)
    feature_id = Column(Integer, ForeignKey("feature_definitions.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    feature = relationship("FeatureDefinition", back_populates="role_access")
    role = relationship("Role", back_populates="feature_access")

    __table_args__ = (
        UniqueConstraint('feature_id', 'role_id', name='uq_role_feature_access_feature_role'),
    )


class UserFeatureFlag(Base):
    __tablename__ = "user_feature_flags"

    id = Column(Integer, primary_key=True, index=True)
    feature_id = Column(Integer, ForeignKey("feature_definitions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    feature = relationship("FeatureDefinition", back_populates="user_flags")
    user = relationship("User", back_populates="feature_flags")

    __table_args__ = (
        UniqueConstraint('feature_id', 'user_id', name='uq_user_feature_flags_feature_user'),
    )
