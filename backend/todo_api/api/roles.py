"""
Role and permission administration endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from todo_api.core.auth import get_current_admin_user_dependency
from todo_api.core.database import get_db
from todo_api.models.user import Role, User
from todo_api.services import users as user_service

router = APIRouter()


class RoleCreate(BaseModel):
    name: str = Field(..., max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    permissions: List[str] = []


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=255)


class RolePermissionsUpdate(BaseModel):
    permissions: List[str]


class PermissionResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    category: Optional[str]

    class Config:
        from_attributes = True


class RoleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    permissions: List[str]
    user_count: int


def role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=sorted(permission.name for permission in role.permissions),
        user_count=len(role.users),
    )


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return [role_response(role) for role in user_service.list_roles(db)]


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    request: RoleCreate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    role = user_service.create_role(db, request.name, request.description, request.permissions)
    return role_response(role)


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    category: Optional[str] = None,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """List permissions, optionally filtered by category."""
    return user_service.list_permissions(db, category)


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    return role_response(user_service.get_role(db, role_id))


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: int,
    request: RoleUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    role = user_service.update_role(db, role_id, request.name, request.description)
    return role_response(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: int,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    user_service.delete_role(db, role_id)


@router.put("/{role_id}/permissions", response_model=RoleResponse)
async def set_role_permissions(
    role_id: int,
    request: RolePermissionsUpdate,
    current_user: User = Depends(get_current_admin_user_dependency),
    db: Session = Depends(get_db)
):
    """Replace the role's permission set."""
    role = user_service.set_role_permissions(db, role_id, request.permissions)
    return role_response(role)
