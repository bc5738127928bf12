"""
FastAPI application entry point.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from todo_api.api import (
    health,
    auth,
    features,
    tasks,
    task_categories,
    tags,
    expenses,
    budgets,
    roles,
    users,
    admin,
)
from todo_api.core.config import get_settings
from todo_api.core.database import SessionLocal, init_db
from todo_api.core.errors import NotFoundError, ValidationError, ConcurrentUpdateConflict
from todo_api.core.permissions import PermissionMiddleware, load_route_permissions

app_settings = get_settings()

logging.basicConfig(
    level=getattr(logging, str(app_settings.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Todo API",
    description="Tasks, expenses, recurrence and feature entitlements",
    version="0.1.0",
)

# Route policy table is data, injected here
app.add_middleware(
    PermissionMiddleware,
    route_permissions=load_route_permissions(app_settings.route_permissions),
)

# CORS middleware (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(features.router, prefix="/api/features", tags=["features"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(task_categories.router, prefix="/api/task-categories", tags=["task-categories"])
app.include_router(tags.router, prefix="/api/tags", tags=["tags"])
app.include_router(expenses.router, prefix="/api/expenses", tags=["expenses"])
app.include_router(budgets.router, prefix="/api/budgets", tags=["budgets"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"success": False, "detail": exc.message})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "detail": exc.message})


@app.exception_handler(ConcurrentUpdateConflict)
async def conflict_handler(request: Request, exc: ConcurrentUpdateConflict):
    logger.warning(f"Concurrent update conflict on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"success": False, "detail": exc.message})


@app.on_event("startup")
async def startup_event():
    """Create tables, seed defaults and start the recurrence scheduler."""
    init_db()

    if app_settings.seed_default_data:
        from todo_api.services.seed import seed_default_data
        db = SessionLocal()
        try:
            seed_default_data(db)
        finally:
            db.close()

    if app_settings.enable_recurrence_scheduler:
        from todo_api.services.recurrence.jobs import start_scheduler
        start_scheduler(app_settings.recurrence_sweep_cron)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    from todo_api.services.recurrence.jobs import stop_scheduler
    stop_scheduler()
