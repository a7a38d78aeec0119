from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_project_service, get_project_service_transactional, get_task_service, require_any
from core.enums import ProjectStatus, SortOrder, TaskPriority, TaskStatus
from core.permissions import Permission
from schemas.common import PaginationMeta
from schemas.project import (
    ProjectCreate,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectMemberInput,
    ProjectMemberResponse,
    ProjectResponse,
    ProjectUpdate,
)
from schemas.task import TaskListResponse, TaskResponse
from services.authz_service import Principal
from services.project_service import ProjectDetail, ProjectService
from services.task_service import TaskService

router = APIRouter()

CanViewProjects = Annotated[
    Principal, Depends(require_any(Permission.PROJECT_VIEW_ALL, Permission.PROJECT_VIEW_OWN))
]
CanEditProjects = Annotated[
    Principal, Depends(require_any(Permission.PROJECT_EDIT_ALL, Permission.PROJECT_EDIT_OWN))
]


def _detail_response(detail: ProjectDetail) -> ProjectDetailResponse:
    response = ProjectDetailResponse.model_validate(detail.project)
    response.members = [ProjectMemberResponse.model_validate(member) for member in detail.members]
    return response


@router.post("", response_model=ProjectDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    principal: Annotated[Principal, Depends(require_any(Permission.PROJECT_CREATE))],
    service: Annotated[ProjectService, Depends(get_project_service_transactional)],
):
    """Create a project; the manager defaults to the caller"""
    return _detail_response(await service.create_project(principal, data.model_dump(exclude_unset=True)))


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    principal: CanViewProjects,
    service: Annotated[ProjectService, Depends(get_project_service)],
    status_filter: Annotated[ProjectStatus | None, Query(alias="status")] = None,
    manager_user_id: str | None = None,
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at", pattern="^(name|created_at|updated_at|start_date|end_date|budget)$"),
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Callers holding only 'project.view.own' see projects they manage or belong to"""
    result = await service.list_projects(
        principal,
        status=status_filter,
        manager_user_id=manager_user_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return ProjectListResponse(
        items=[ProjectResponse.model_validate(project) for project in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    principal: CanViewProjects,
    service: Annotated[ProjectService, Depends(get_project_service)],
):
    return _detail_response(await service.get_project(principal, project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    principal: CanEditProjects,
    service: Annotated[ProjectService, Depends(get_project_service_transactional)],
):
    return await service.update_project(principal, project_id, data.model_dump(exclude_unset=True))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    principal: Annotated[
        Principal, Depends(require_any(Permission.PROJECT_DELETE_ALL, Permission.PROJECT_DELETE_OWN))
    ],
    service: Annotated[ProjectService, Depends(get_project_service_transactional)],
):
    """Soft delete; the project's tasks are hidden with it"""
    await service.delete_project(principal, project_id)


@router.post(
    "/{project_id}/members", response_model=ProjectMemberResponse, status_code=status.HTTP_201_CREATED
)
async def add_project_member(
    project_id: str,
    data: ProjectMemberInput,
    principal: CanEditProjects,
    service: Annotated[ProjectService, Depends(get_project_service_transactional)],
):
    return await service.add_member(principal, project_id, data.user_id, data.role)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project_member(
    project_id: str,
    user_id: str,
    principal: CanEditProjects,
    service: Annotated[ProjectService, Depends(get_project_service_transactional)],
):
    await service.remove_member(principal, project_id, user_id)


@router.get("/{project_id}/tasks", response_model=TaskListResponse)
async def list_project_tasks(
    project_id: str,
    principal: Annotated[Principal, Depends(require_any(Permission.TASK_VIEW_ALL, Permission.TASK_VIEW_OWN))],
    service: Annotated[TaskService, Depends(get_task_service)],
    status_filter: Annotated[TaskStatus | None, Query(alias="status")] = None,
    priority: TaskPriority | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Tasks of a project visible to the caller"""
    result = await service.list_project_tasks(
        principal, project_id, status=status_filter, priority=priority, page=page, page_size=page_size
    )
    return TaskListResponse(
        items=[TaskResponse.model_validate(task) for task in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )
