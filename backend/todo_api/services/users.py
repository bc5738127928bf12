"""
User, role and permission service.
"""
import logging
from typing import List, Optional
import bcrypt
from sqlalchemy.orm import Session
from todo_api.core.errors import NotFoundError, ValidationError
from todo_api.models.user import User, Role, Permission

logger = logging.getLogger(__name__)

DEFAULT_USER_ROLE = "User"


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    password_bytes = password.encode('utf-8')
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.id).all()


def register_user(
    db: Session,
    email: str,
    password: str,
    full_name: Optional[str] = None,
    role_names: Optional[List[str]] = None,
) -> User:
    """Create a user with the given roles (default: User)."""
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if get_user_by_email(db, email):
        raise ValidationError("Email already registered")

    user = User(
        email=email.lower(),
        hashed_password=hash_password(password),
        full_name=full_name,
        is_active=True,
    )
    for role_name in role_names or [DEFAULT_USER_ROLE]:
        role = get_role_by_name(db, role_name)
        if role:
            user.roles.append(role)
        else:
            logger.warning(f"Role {role_name} does not exist, not assigned to {email}")

    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.email} (id={user.id})")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def update_user(
    db: Session,
    user_id: int,
    full_name: Optional[str] = None,
    is_active: Optional[bool] = None,
    role_names: Optional[List[str]] = None,
) -> User:
    """Admin update: profile, active flag and role assignment."""
    user = get_user(db, user_id)

    roles = None
    if role_names is not None:
        roles = []
        for role_name in role_names:
            role = get_role_by_name(db, role_name)
            if not role:
                raise ValidationError(f"Unknown role: {role_name}")
            roles.append(role)

    if full_name is not None:
        user.full_name = full_name
    if is_active is not None:
        user.is_active = is_active
    if roles is not None:
        user.roles = roles

    db.commit()
    db.refresh(user)
    logger.info(f"Updated user {user.id}: roles={user.role_names}, active={user.is_active}")
    return user


# Roles

def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name).all()


def get_role(db: Session, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise NotFoundError("Role not found")
    return role


def get_role_by_name(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(Role.name == name).first()


def create_role(db: Session, name: str, description: Optional[str] = None, permission_names: Optional[List[str]] = None) -> Role:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Role name is required")
    if get_role_by_name(db, name):
        raise ValidationError("A role with this name already exists")

    role = Role(name=name, description=description)
    if permission_names:
        role.permissions = _resolve_permissions(db, permission_names)
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info(f"Created role {role.name} (id={role.id})")
    return role


def update_role(db: Session, role_id: int, name: Optional[str] = None, description: Optional[str] = None) -> Role:
    role = get_role(db, role_id)
    if name is not None and name != role.name:
        existing = get_role_by_name(db, name)
        if existing and existing.id != role.id:
            raise ValidationError("A role with this name already exists")
        role.name = name
    if description is not None:
        role.description = description
    db.commit()
    db.refresh(role)
    logger.info(f"Updated role {role.name} (id={role.id})")
    return role


def delete_role(db: Session, role_id: int) -> None:
    role = get_role(db, role_id)
    if role.users:
        raise ValidationError(f"Role {role.name} is still assigned to {len(role.users)} user(s)")
    name = role.name
    db.delete(role)
    db.commit()
    logger.info(f"Deleted role {name} (id={role_id})")


def set_role_permissions(db: Session, role_id: int, permission_names: List[str]) -> Role:
    """Replace the role's permissions."""
    role = get_role(db, role_id)
    role.permissions = _resolve_permissions(db, permission_names)
    db.commit()
    db.refresh(role)
    logger.info(f"Set permissions of role {role.name}: {sorted(p.name for p in role.permissions)}")
    return role


# Permissions

def list_permissions(db: Session, category: Optional[str] = None) -> List[Permission]:
    query = db.query(Permission)
    if category:
        query = query.filter(Permission.category == category)
    return query.order_by(Permission.category, Permission.name).all()


def _resolve_permissions(db: Session, permission_names: List[str]) -> List[Permission]:
    permissions = []
    for permission_name in permission_names:
        permission = db.query(Permission).filter(Permission.name == permission_name).first()
        if not permission:
            raise ValidationError(f"Unknown permission: {permission_name}")
        permissions.append(permission)
    return permissions
