"""
Route-level role/permission policy.

The policy is a plain table of RoutePermission entries handed to
PermissionMiddleware when the app is built. A request is allowed when the
user holds any of the entry's roles (or the entry lists none) and any of its
permissions (or the entry lists none). Routes without an entry for the
request method fall through to the endpoint's own dependencies.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence
from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from todo_api.core.auth import verify_session
from todo_api.core.config import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutePermission:
    path_template: str  # "{param}" segments match any value
    method: str
    roles: Sequence[str] = field(default_factory=tuple)
    permissions: Sequence[str] = field(default_factory=tuple)


DEFAULT_ROUTE_PERMISSIONS: List[RoutePermission] = [
    # User management
    RoutePermission("/api/users", "GET", ("Admin",), ("ViewUsers",)),
    RoutePermission("/api/users", "POST", ("Admin",), ("CreateUsers",)),
    RoutePermission("/api/users/{id}", "GET", ("Admin",), ("ViewUsers",)),
    RoutePermission("/api/users/{id}", "PUT", ("Admin",), ("UpdateUsers",)),
    RoutePermission("/api/users/{id}", "DELETE", ("Admin",), ("DeleteUsers",)),
    # Role management
    RoutePermission("/api/roles", "GET", ("Admin",), ("ViewRoles",)),
    RoutePermission("/api/roles", "POST", ("Admin",), ("ManageRoles",)),
    RoutePermission("/api/roles/{id}", "GET", ("Admin",), ("ViewRoles",)),
    RoutePermission("/api/roles/{id}", "PUT", ("Admin",), ("ManageRoles",)),
    RoutePermission("/api/roles/{id}", "DELETE", ("Admin",), ("ManageRoles",)),
    # Tasks
    RoutePermission("/api/tasks", "GET", ("Admin", "User")),
    RoutePermission("/api/tasks", "POST", ("Admin", "User")),
    RoutePermission("/api/tasks/{id}", "GET", ("Admin", "User")),
    RoutePermission("/api/tasks/{id}", "PUT", ("Admin", "User")),
    RoutePermission("/api/tasks/{id}", "PATCH", ("Admin", "User")),
    RoutePermission("/api/tasks/{id}", "DELETE", ("Admin", "User")),
    RoutePermission("/api/tasks/all", "GET", ("Admin",), ("ViewAllTodos",)),
    # Task organisation and budgets: writes need a full user
    RoutePermission("/api/task-categories", "POST", ("Admin", "User")),
    RoutePermission("/api/task-categories/{id}", "PUT", ("Admin", "User")),
    RoutePermission("/api/task-categories/{id}", "DELETE", ("Admin", "User")),
    RoutePermission("/api/tags", "POST", ("Admin", "User")),
    RoutePermission("/api/tags/{id}", "PUT", ("Admin", "User")),
    RoutePermission("/api/tags/{id}", "DELETE", ("Admin", "User")),
    RoutePermission("/api/budgets", "POST", ("Admin", "User")),
    RoutePermission("/api/budgets/{id}", "PUT", ("Admin", "User")),
    RoutePermission("/api/budgets/{id}", "DELETE", ("Admin", "User")),
    # Admin
    RoutePermission("/api/admin/statistics", "GET", ("Admin",)),
]


def load_route_permissions(raw) -> List[RoutePermission]:
    """
    Build the policy table from configuration.

    ``raw`` is None (use the defaults) or a list of RoutePermission objects
    or dicts with path_template/method/roles/permissions keys.
    """
    if raw is None:
        return list(DEFAULT_ROUTE_PERMISSIONS)
    table = []
    for item in raw:
        if isinstance(item, RoutePermission):
            table.append(item)
        else:
            table.append(RoutePermission(
                path_template=item["path_template"],
                method=item["method"].upper(),
                roles=tuple(item.get("roles", ())),
                permissions=tuple(item.get("permissions", ())),
            ))
    return table


def _segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def template_matches(template: str, path: str) -> bool:
    """Segment-wise, case-insensitive match; "{...}" template segments match anything."""
    template_segments = _segments(template)
    path_segments = _segments(path)
    if len(template_segments) != len(path_segments):
        return False
    for template_segment, path_segment in zip(template_segments, path_segments):
        if template_segment.startswith("{") and template_segment.endswith("}"):
            continue
        if template_segment.lower() != path_segment.lower():
            return False
    return True


def find_route_permission(
    table: Iterable[RoutePermission],
    path: str,
    method: str,
) -> Optional[RoutePermission]:
    """
    Entry for (path, method), or None.

    A template that matches the path literally wins over parameterised ones,
    so "/api/tasks/all" is not shadowed by "/api/tasks/{id}".
    """
    table = list(table)
    normalized = "/" + "/".join(_segments(path))

    templates = []
    for entry in table:
        if entry.path_template not in templates:
            templates.append(entry.path_template)

    matched = None
    for template in templates:
        if template.lower() == normalized.lower():
            matched = template
            break
    if matched is None:
        for template in templates:
            if template_matches(template, normalized):
                matched = template
                break
    if matched is None:
        return None

    for entry in table:
        if entry.path_template == matched and entry.method.upper() == method.upper():
            return entry
    return None


def is_allowed(entry: RoutePermission, roles: Iterable[str], permissions: Iterable[str]) -> bool:
    user_roles = {role.lower() for role in roles}
    user_permissions = set(permissions)

    has_role = not entry.roles or any(role.lower() in user_roles for role in entry.roles)
    has_permission = not entry.permissions or any(p in user_permissions for p in entry.permissions)
    return has_role and has_permission


class PermissionMiddleware(BaseHTTPMiddleware):
    """Enforce the route policy table on /api requests (except /api/auth)."""

    def __init__(self, app, route_permissions: Optional[Sequence[RoutePermission]] = None):
        super().__init__(app)
        self.route_permissions = list(
            DEFAULT_ROUTE_PERMISSIONS if route_permissions is None else route_permissions
        )

    @staticmethod
    def _is_exempt(path: str) -> bool:
        lowered = path.lower()
        if not (lowered == "/api" or lowered.startswith("/api/")):
            return True
        return lowered == "/api/auth" or lowered.startswith("/api/auth/")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method == "OPTIONS" or self._is_exempt(path):
            return await call_next(request)

        session_data = verify_session(request.cookies.get(SESSION_COOKIE_NAME))
        if not session_data:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "detail": "Authentication required"},
            )

        entry = find_route_permission(self.route_permissions, path, request.method)
        if entry is None:
            return await call_next(request)

        if not is_allowed(entry, session_data.get("roles", []), session_data.get("permissions", [])):
            logger.warning(f"Access denied for {session_data.get('email', 'unknown')} to {request.method} {path}")
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"success": False, "detail": "You don't have permission to access this resource"},
            )

        return await call_next(request)
