from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.features.audits.dependencies.services import get_task_service
from app.features.audits.schemas.task import CreateTaskRequest
from app.features.audits.services.task_service import TaskService
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["Audit Tasks"])


@router.post(
    "",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create an audit task",
    description="Validate the URL, store a queued task and enqueue it for the audit worker",
)
def create_task(
    request: CreateTaskRequest,
    service: TaskService = Depends(get_task_service),
):
    task = service.create_task(request)
    logger.info(f"[{task.task_id}] Task queued via API for {task.url}")

    return api_response(
        data=task,
        message="Audit task created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.get(
    "",
    response_model=dict,
    status_code=status.HTTP_200_OK,
    summary="List recent audit tasks",
    description="Most recently created tasks first. Screenshot references are not signed here.",
)
def list_tasks(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum number of tasks"),
    service: TaskService = Depends(get_task_service),
):
    tasks = service.list_recent_tasks(limit)

    return api_response(
        data=tasks,
        message="Audit tasks retrieved successfully",
        status_code=status.HTTP_200_OK,
    )


@router.get(
    "/{task_id}",
    response_model=dict,
    status_code=status.HTTP_200_OK,
    summary="Get an audit task",
    description="Retrieve a task with signed links for every stored screenshot",
)
def get_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    task = service.get_task(task_id)
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task {task_id} not found",
        )

    return api_response(
        data=task,
        message="Audit task retrieved successfully",
        status_code=status.HTTP_200_OK,
    )


@router.delete(
    "/{task_id}",
    response_model=dict,
    status_code=status.HTTP_200_OK,
    summary="Delete an audit task",
    description="Delete the task document and every screenshot it references",
)
def delete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    if not service.delete_task(task_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task {task_id} not found",
        )

    return api_response(
        data={"task_id": task_id},
        message="Audit task deleted successfully",
        status_code=status.HTTP_200_OK,
    )
