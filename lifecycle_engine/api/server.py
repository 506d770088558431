"""
FastAPI Server for the Lifecycle Engine.

Provides REST API endpoints for lifecycle creation, task and checklist
progress, offboarding initiation, reporting and final payroll retrieval.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import load_config
from ..exceptions import (
    ConcurrentModificationError,
    InvalidTaskTransitionError,
    LifecycleConflictError,
    LifecycleEngineError,
    LifecycleNotFoundError,
    LifecycleValidationError,
)
from ..models import LifecycleFilters, PaginatedLifecycles, RequesterContext
from ..service import LifecycleService

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    LifecycleValidationError: 400,
    InvalidTaskTransitionError: 400,
    LifecycleNotFoundError: 404,
    LifecycleConflictError: 409,
    ConcurrentModificationError: 409,
}


# Pydantic models for API requests
class _RequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateLifecycleRequest(_RequestBody):
    """Lifecycle creation request."""
    employee_id: Optional[str] = Field(None, alias="employeeId")
    type: Optional[str] = Field(None, description="Onboarding or Offboarding")
    department_id: Optional[str] = Field(None, alias="departmentId")
    role_id: Optional[str] = Field(None, alias="roleId")
    assigned_hr: Optional[str] = Field(None, alias="assignedHR")
    target_completion_date: Optional[datetime] = Field(None, alias="targetCompletionDate")
    notes: Optional[str] = None


class InitiateOffboardingRequest(_RequestBody):
    """Offboarding initiation request."""
    employee_id: Optional[str] = Field(None, alias="employeeId")


class UpdateStatusRequest(_RequestBody):
    """Manual lifecycle status change."""
    status: str
    notes: Optional[str] = None


class UpdateTaskRequest(_RequestBody):
    """Task action request."""
    task_id: str = Field(..., alias="taskId")
    action: str = Field(..., description="start, complete or cancel")
    notes: Optional[str] = None


class ChecklistItemRequest(_RequestBody):
    """Checklist item completion request."""
    item_index: Any = Field(..., alias="itemIndex")
    notes: Optional[str] = ""


# Global service (initialized on startup unless already set)
service: Optional[LifecycleService] = None
min_role_level: int = 700


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global service, min_role_level

    created = False
    if service is None:
        logger.info("Initializing Lifecycle Engine API server components")
        config = load_config(os.environ.get("LIFECYCLE_CONFIG"))
        service = LifecycleService.from_config(config)
        min_role_level = config.access.min_role_level
        created = True
        logger.info("Lifecycle Engine API server components initialized")

    yield

    logger.info("Shutting down Lifecycle Engine API server")
    if created:
        service.completion_handler.shutdown()
        service = None


app = FastAPI(
    title="Lifecycle Engine API",
    description="Employee onboarding and offboarding lifecycle management",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def envelope(data: Any = None, message: str = "", success: bool = True) -> Dict[str, Any]:
    return {"success": success, "data": data, "message": message}


@app.exception_handler(LifecycleEngineError)
async def lifecycle_error_handler(request: Request, exc: LifecycleEngineError):
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code == 500:
        logger.error(f"Unhandled engine error on {request.url.path}: {exc}")
    else:
        logger.warning(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=envelope(None, exc.message, success=False))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=envelope(None, str(exc.detail), success=False))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err["loc"][1:]) for err in exc.errors()]
    message = f"Invalid request: {', '.join(f for f in fields if f)}" if fields else "Invalid request"
    return JSONResponse(status_code=400, content=envelope(None, message, success=False))


def get_service() -> LifecycleService:
    if service is None:
        raise HTTPException(status_code=503, detail="Lifecycle service not available")
    return service


def get_requester(
    x_user_id: Optional[str] = Header(None),
    x_role_level: int = Header(0),
    x_department_id: Optional[str] = Header(None),
    x_department_name: Optional[str] = Header(None),
) -> RequesterContext:
    """Caller identity from the headers set by the authorization layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    if x_role_level < min_role_level:
        logger.warning(f"User {x_user_id} with role level {x_role_level} denied")
        raise HTTPException(status_code=403, detail="Insufficient privileges")
    return RequesterContext(
        user_id=x_user_id,
        role_level=x_role_level,
        department_id=x_department_id,
        department_name=x_department_name,
    )


def build_filters(status: Optional[str], type: Optional[str],
                  department: Optional[str], search: Optional[str]) -> LifecycleFilters:
    try:
        return LifecycleFilters(status=status, type=type, department_id=department, search=search)
    except ValidationError as e:
        raise LifecycleValidationError(f"Invalid filter: {e.errors()[0]['msg']}") from e


def page_data(page: PaginatedLifecycles, now: datetime) -> Dict[str, Any]:
    data = page.model_dump(mode="json")
    data["docs"] = [lc.summary(now) for lc in page.docs]
    return data


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Lifecycle Engine API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return envelope({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"lifecycle_service": service is not None},
    })


@app.get("/lifecycles")
def list_lifecycles(
    page: int = Query(1, description="Page number"),
    limit: int = Query(10, description="Page size"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    status: Optional[str] = Query(None, description="Filter by status"),
    type: Optional[str] = Query(None, description="Filter by lifecycle type"),
    department: Optional[str] = Query(None, description="Filter by department id"),
    search: Optional[str] = Query(None, description="Match employee name or email"),
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """List lifecycles visible to the caller."""
    filters = build_filters(status, type, department, search)
    result = svc.queries.list_lifecycles(requester, filters, page, limit, sort_by, sort_order)
    return envelope(page_data(result, svc.clock()), "Lifecycles retrieved successfully")


@app.get("/lifecycles/stats")
def lifecycle_stats(
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Counts over the lifecycles visible to the caller."""
    stats = svc.queries.get_stats(requester)
    return envelope(stats.model_dump(), "Lifecycle statistics retrieved successfully")


@app.get("/lifecycles/active")
def active_lifecycles(
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """All Initiated or In Progress lifecycles."""
    now = svc.clock()
    return envelope([lc.summary(now) for lc in svc.queries.find_active()], "Active lifecycles retrieved")


@app.get("/lifecycles/overdue")
def overdue_lifecycles(
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Active lifecycles past their target completion date."""
    now = svc.clock()
    return envelope([lc.summary(now) for lc in svc.queries.find_overdue(now)], "Overdue lifecycles retrieved")


@app.get("/lifecycles/offboarding")
def offboarding_lifecycles(
    page: int = Query(1),
    limit: int = Query(10),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    status: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Offboarding lifecycles that are running or completed."""
    filters = build_filters(status, None, department, search)
    result = svc.queries.list_offboarding(requester, filters, page, limit, sort_by, sort_order)
    return envelope(page_data(result, svc.clock()), "Offboarding lifecycles retrieved successfully")


@app.post("/lifecycles/offboarding/initiate")
def initiate_offboarding(
    request: InitiateOffboardingRequest,
    response: Response,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Start or re-start offboarding for an employee."""
    lifecycle, reinitiated = svc.initiate_offboarding(request.employee_id, requester)
    if reinitiated:
        message = "Offboarding re-initiated successfully"
    else:
        response.status_code = 201
        message = "Offboarding initiated successfully"
    return envelope(lifecycle.summary(svc.clock()), message)


@app.get("/lifecycles/{lifecycle_id}")
def get_lifecycle(
    lifecycle_id: str,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Get a single lifecycle with derived progress values."""
    lifecycle = svc.get_lifecycle(lifecycle_id)
    return envelope(lifecycle.summary(svc.clock()), "Lifecycle retrieved successfully")


@app.post("/lifecycles", status_code=201)
def create_lifecycle(
    request: CreateLifecycleRequest,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Create a standard lifecycle for an employee."""
    lifecycle = svc.create_lifecycle(
        employee_id=request.employee_id,
        lifecycle_type=request.type,
        department_id=request.department_id,
        assigned_hr=request.assigned_hr,
        initiated_by=requester.user_id,
        role_id=request.role_id,
        target_completion_date=request.target_completion_date,
        notes=request.notes,
    )
    return envelope(lifecycle.summary(svc.clock()), "Lifecycle created successfully")


@app.patch("/lifecycles/{lifecycle_id}/status")
def update_lifecycle_status(
    lifecycle_id: str,
    request: UpdateStatusRequest,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Administrative status override."""
    lifecycle = svc.update_lifecycle_status(lifecycle_id, request.status, requester.user_id, request.notes)
    return envelope(lifecycle.summary(svc.clock()), "Lifecycle status updated successfully")


@app.patch("/lifecycles/{lifecycle_id}/tasks")
def update_task(
    lifecycle_id: str,
    request: UpdateTaskRequest,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Start, complete or cancel a task."""
    lifecycle = svc.update_task_status(lifecycle_id, request.task_id, request.action,
                                       requester.user_id, request.notes)
    return envelope(lifecycle.summary(svc.clock()), "Task updated successfully")


@app.patch("/lifecycles/{lifecycle_id}/checklist")
def complete_checklist_item(
    lifecycle_id: str,
    request: ChecklistItemRequest,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Complete a checklist item by index."""
    lifecycle = svc.complete_checklist_item(lifecycle_id, request.item_index, requester.user_id, request.notes)
    return envelope(lifecycle.summary(svc.clock()), "Checklist item completed successfully")


@app.get("/payroll/final/{employee_id}")
def final_payroll(
    employee_id: str,
    requester: RequesterContext = Depends(get_requester),
    svc: LifecycleService = Depends(get_service),
):
    """Final payroll stored by the employee's completed offboarding."""
    data = svc.queries.get_final_payroll_data(employee_id)
    completed_at = data["offboarding_completed_at"]
    data["offboarding_completed_at"] = completed_at.isoformat() if completed_at else None
    return envelope(data, "Final payroll data retrieved successfully")


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "lifecycle_engine.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server()
