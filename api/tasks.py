from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_task_service, get_task_service_transactional, require_any
from core.enums import SortOrder, TaskPriority, TaskStatus
from core.permissions import Permission
from schemas.common import PaginationMeta
from schemas.task import TaskCreate, TaskListResponse, TaskResponse, TaskUpdate
from services.authz_service import Principal
from services.task_service import TaskService

router = APIRouter()

CanViewTasks = Annotated[
    Principal, Depends(require_any(Permission.TASK_VIEW_ALL, Permission.TASK_VIEW_OWN))
]

SORT_PATTERN = "^(title|created_at|updated_at|due_date|priority)$"


def _list_response(result) -> TaskListResponse:
    return TaskListResponse(
        items=[TaskResponse.model_validate(task) for task in result.items],
        pagination=PaginationMeta(**result.pagination()),
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    principal: Annotated[Principal, Depends(require_any(Permission.TASK_CREATE))],
    service: Annotated[TaskService, Depends(get_task_service_transactional)],
):
    """Create a task in a project the caller can see"""
    return await service.create_task(principal, data.model_dump(exclude_unset=True))


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    principal: CanViewTasks,
    service: Annotated[TaskService, Depends(get_task_service)],
    project_id: str | None = None,
    status_filter: Annotated[TaskStatus | None, Query(alias="status")] = None,
    priority: TaskPriority | None = None,
    assignee_user_id: str | None = None,
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at", pattern=SORT_PATTERN),
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Callers holding only 'task.view.own' see tasks assigned to or created by them"""
    result = await service.list_tasks(
        principal,
        project_id=project_id,
        status=status_filter,
        priority=priority,
        assignee_user_id=assignee_user_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return _list_response(result)


# Declared before /{task_id} so "my" is not taken for an id
@router.get("/my", response_model=TaskListResponse)
async def list_my_tasks(
    principal: CanViewTasks,
    service: Annotated[TaskService, Depends(get_task_service)],
    status_filter: Annotated[TaskStatus | None, Query(alias="status")] = None,
    sort_by: str = Query("due_date", pattern=SORT_PATTERN),
    sort_order: SortOrder = SortOrder.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    result = await service.list_my_tasks(
        principal, status=status_filter, sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size
    )
    return _list_response(result)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    principal: CanViewTasks,
    service: Annotated[TaskService, Depends(get_task_service)],
):
    return await service.get_task(principal, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    principal: Annotated[
        Principal, Depends(require_any(Permission.TASK_EDIT_ALL, Permission.TASK_EDIT_OWN))
    ],
    service: Annotated[TaskService, Depends(get_task_service_transactional)],
):
    return await service.update_task(principal, task_id, data.model_dump(exclude_unset=True))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    principal: Annotated[
        Principal, Depends(require_any(Permission.TASK_DELETE_ALL, Permission.TASK_DELETE_OWN))
    ],
    service: Annotated[TaskService, Depends(get_task_service_transactional)],
):
    await service.delete_task(principal, task_id)
