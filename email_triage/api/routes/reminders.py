from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..deps import Services, get_current_user, get_services
from ..schemas import ReminderCreate, reminder_to_dict

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("", status_code=201)
def create_reminder(body: ReminderCreate, user_id: str = Depends(get_current_user),
                    services: Services = Depends(get_services)):
    reminder = services.reminders.create(user_id, body.email_id, body.remind_at, body.reason)
    return {'success': True, 'reminder': reminder_to_dict(reminder)}


@router.get("")
def list_reminders(status: str = Query("pending"), user_id: str = Depends(get_current_user),
                   services: Services = Depends(get_services)):
    reminders = services.reminders.list_for_user(user_id, status=status)
    return {
        'success': True,
        'reminders': [reminder_to_dict(r, services.db.find_email(r.email_id)) for r in reminders],
    }


@router.delete("/{reminder_id}")
def cancel_reminder(reminder_id: UUID, user_id: str = Depends(get_current_user),
                    services: Services = Depends(get_services)):
    reminder = services.reminders.cancel(user_id, reminder_id)
    return {'success': True, 'message': 'Reminder cancelled', 'reminder': reminder_to_dict(reminder)}
