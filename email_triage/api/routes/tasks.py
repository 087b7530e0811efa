from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..deps import Services, get_current_user, get_services
from ..schemas import TaskCreate, TaskUpdate, task_to_dict

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("")
def list_tasks(status: Optional[str] = Query(None), limit: int = Query(50, ge=1, le=200),
               user_id: str = Depends(get_current_user), services: Services = Depends(get_services)):
    tasks = services.tasks.list(user_id, status=status, limit=limit)
    return {'success': True, 'count': len(tasks), 'tasks': [task_to_dict(t) for t in tasks]}


@router.post("", status_code=201)
def create_task(body: TaskCreate, user_id: str = Depends(get_current_user),
                services: Services = Depends(get_services)):
    task = services.tasks.create(user_id, body.title, body.description, body.priority, body.due_date)
    return {'success': True, 'message': 'Task created successfully', 'task': task_to_dict(task)}


@router.post("/from-email/{email_id}", status_code=201)
def create_task_from_email(email_id: UUID, user_id: str = Depends(get_current_user),
                           services: Services = Depends(get_services)):
    task = services.tasks.create_from_email(user_id, email_id)
    return {'success': True, 'message': 'Task created from email', 'task': task_to_dict(task)}


@router.put("/{task_id}")
def update_task(task_id: UUID, body: TaskUpdate, user_id: str = Depends(get_current_user),
                services: Services = Depends(get_services)):
    task = services.tasks.update(
        user_id, task_id,
        status=body.status,
        title=body.title,
        description=body.description,
        priority=body.priority,
        due_date=body.due_date,
    )
    return {'success': True, 'message': 'Task updated successfully', 'task': task_to_dict(task)}
