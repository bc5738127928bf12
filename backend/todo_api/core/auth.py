"""
Signed cookie sessions and the FastAPI dependencies that resolve the caller.
"""
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status, Cookie
from sqlalchemy.orm import Session
from todo_api.core.config import SESSION_COOKIE_NAME, SESSION_SECRET, SESSION_TTL_HOURS
from todo_api.core.database import get_db
from todo_api.models.user import User

logger = logging.getLogger(__name__)

# Token -> payload cache; tokens not found here are re-verified by signature
_sessions: dict[str, dict] = {}

__all__ = [
    'create_session',
    'verify_session',
    'delete_session',
    'get_current_user_dependency',
    'get_current_admin_user_dependency',
    'require_feature',
]


def _sign(payload: str) -> str:
    return hmac.new(
        (SESSION_SECRET or "todo-dev-session-secret").encode(),
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def create_session(user_id: int, email: str, roles: list[str], permissions: list[str]) -> str:
    """Issue a token of the form `<payload json>.<hex hmac>`."""
    session_data = {
        'user_id': user_id,
        'email': email,
        'roles': roles,
        'permissions': permissions,
        'created_at': datetime.now(timezone.utc).isoformat(),
    }

    session_json = json.dumps(session_data, sort_keys=True)
    session_token = f"{session_json}.{_sign(session_json)}"
    _sessions[session_token] = session_data

    return session_token


def _is_expired(session_data: dict) -> bool:
    created_at = datetime.fromisoformat(session_data['created_at'])
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) - created_at > timedelta(hours=SESSION_TTL_HOURS)


def verify_session(session_token: Optional[str]) -> Optional[dict]:
    """Return the payload of a valid, unexpired token, else None."""
    if not session_token:
        return None

    session_data = _sessions.get(session_token)
    if session_data is not None:
        if _is_expired(session_data):
            delete_session(session_token)
            return None
        return session_data

    parts = session_token.rsplit('.', 1)
    if len(parts) != 2:
        return None

    session_json, signature = parts
    if not hmac.compare_digest(signature, _sign(session_json)):
        return None

    try:
        session_data = json.loads(session_json)
        if _is_expired(session_data):
            return None
    except (ValueError, KeyError, TypeError):
        logger.warning("Discarding malformed session token")
        return None

    _sessions[session_token] = session_data
    return session_data


def delete_session(session_token: str):
    """Forget a token (logout)."""
    _sessions.pop(session_token, None)


def get_current_user_dependency(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the active user behind the session cookie, or 401."""
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )

    session_data = verify_session(session_token)
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session is invalid or has expired"
        )

    user = db.query(User).filter(User.id == session_data['user_id']).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is unknown or deactivated"
        )

    return user


def get_current_admin_user_dependency(
    current_user: User = Depends(get_current_user_dependency)
) -> User:
    """Same as get_current_user_dependency, restricted to platform admins."""
    if not current_user.is_platform_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def require_feature(feature_name: str):
    """
    Build a dependency that lets the request through only when `feature_name`
    is on for the caller, e.g. `Depends(require_feature("TodoApp"))`.
    Evaluates user override, then role overrides, then the feature default,
    all gated by the feature's availability window.
    """
    def feature_checker(
        current_user: User = Depends(get_current_user_dependency),
        db: Session = Depends(get_db)
    ) -> User:
        from todo_api.services.features import is_feature_enabled

        role_ids = [role.id for role in current_user.roles]
        if not is_feature_enabled(db, feature_name, current_user.id, role_ids):
            logger.warning(f"User {current_user.id} denied access to feature '{feature_name}'")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Feature '{feature_name}' is not enabled for your account. Please contact an administrator."
            )
        return current_user

    return feature_checker
