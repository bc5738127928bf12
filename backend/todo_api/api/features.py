"""
Feature management endpoints.

Everything here is admin-only except GET /me, which returns the calling
user's effective feature flags.
"""
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.core.auth import get_current_admin_user_dependency, get_current_user_dependency
from todo_api.core.database import get_db
from todo_api.models.user import User
from todo_api.services import features as feature_service
from todo_api.services.clock import system_clock
from todo_api.services.features import FeatureEvaluator, is_feature_time_valid
from todo_api.services.users import get_user

router = APIRouter()


class FeatureCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    enabled_by_default: bool = True
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    enabled_for_roles: List[str] = []


class FeatureUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    enabled_by_default: Optional[bool] = None
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None
    clear_time_restrictions: bool = False


class FeatureResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    enabled_by_default: bool
    available_from: Optional[datetime]
    available_until: Optional[datetime]
    is_time_restricted: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class FeatureAvailabilityResponse(BaseModel):
    feature_id: int
    name: str
    is_available: bool  # Inside the availability window right now
    enabled_for_me: bool
    available_from: Optional[datetime]
    available_until: Optional[datetime]


class OverrideUpdate(BaseModel):
    is_enabled: bool


class UserFeatureFlagResponse(BaseModel):
    feature_id: int
    user_id: int
    is_enabled: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RoleFeatureAccessResponse(BaseModel):
    feature_id: int
    role_id: int
    is_enabled: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


@router.get("", response_model=List[FeatureResponse])
async def list_features(
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """List all feature definitions."""
    return feature_service.list_features(db)


@router.post("", response_model=FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    request: FeatureCreate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.create_feature(
        db,
        name=request.name,
        description=request.description,
        enabled_by_default=request.enabled_by_default,
        available_from=request.available_from,
        available_until=request.available_until,
        enabled_for_roles=request.enabled_for_roles,
    )


@router.get("/me", response_model=Dict[str, bool])
async def my_features(
    current_user: User = Depends(get_current_user_dependency),
    db: Session = Depends(get_db)
):
    """Effective enablement of every feature for the current user."""
    evaluator = FeatureEvaluator.for_session(db)
    return evaluator.effective_features(current_user.id, [role.id for role in current_user.roles])


@router.get("/users/{user_id}", response_model=List[UserFeatureFlagResponse])
async def list_user_feature_flags(
    user_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """List a user's feature overrides."""
    get_user(db, user_id)
    return feature_service.list_user_feature_flags(db, user_id)


@router.get("/{feature_id}", response_model=FeatureResponse)
async def get_feature(
    feature_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.get_feature(db, feature_id)


@router.put("/{feature_id}", response_model=FeatureResponse)
async def update_feature(
    feature_id: int,
    request: FeatureUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Partially update a feature; omitted fields are left unchanged."""
    changes = request.model_dump(exclude_unset=True)
    return feature_service.update_feature(db, feature_id, **changes)


@router.delete("/{feature_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feature(
    feature_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    feature_service.delete_feature(db, feature_id)


@router.get("/{feature_id}/availability", response_model=FeatureAvailabilityResponse)
async def feature_availability(
    feature_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Whether the feature is inside its availability window, and enabled for the caller."""
    feature = feature_service.get_feature(db, feature_id)
    now = system_clock.now()
    evaluator = FeatureEvaluator.for_session(db)
    return FeatureAvailabilityResponse(
        feature_id=feature.id,
        name=feature.name,
        is_available=is_feature_time_valid(feature, now),
        enabled_for_me=evaluator.is_enabled(feature.name, current_user.id, [role.id for role in current_user.roles], now),
        available_from=feature.available_from,
        available_until=feature.available_until,
    )


# User overrides

@router.get("/{feature_id}/users/{user_id}", response_model=UserFeatureFlagResponse)
async def get_user_feature_flag(
    feature_id: int,
    user_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.get_user_feature_flag(db, feature_id, user_id)


@router.put("/{feature_id}/users/{user_id}", response_model=UserFeatureFlagResponse)
async def set_user_feature_flag(
    feature_id: int,
    user_id: int,
    request: OverrideUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Enable or disable a feature for one user, overriding roles and the default."""
    return feature_service.set_user_feature_flag(db, feature_id, user_id, request.is_enabled)


@router.delete("/{feature_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_user_feature_flag(
    feature_id: int,
    user_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    feature_service.reset_user_feature_flag(db, feature_id, user_id)


# Role overrides

@router.get("/{feature_id}/roles", response_model=List[RoleFeatureAccessResponse])
async def list_role_feature_access(
    feature_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.list_role_feature_access(db, feature_id)


@router.get("/{feature_id}/roles/{role_id}", response_model=RoleFeatureAccessResponse)
async def get_role_feature_access(
    feature_id: int,
    role_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.get_role_feature_access(db, feature_id, role_id)


@router.put("/{feature_id}/roles/{role_id}", response_model=RoleFeatureAccessResponse)
async def set_role_feature_access(
    feature_id: int,
    role_id: int,
    request: OverrideUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return feature_service.set_role_feature_access(db, feature_id, role_id, request.is_enabled)


@router.delete("/{feature_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_role_feature_access(
    feature_id: int,
    role_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    feature_service.reset_role_feature_access(db, feature_id, role_id)
