from fastapi import APIRouter, Depends

from ...errors import ValidationError
from ...notifications import is_expo_push_token
from ..deps import Services, get_current_user, get_services
from ..schemas import NotificationSettingsUpdate, PushTokenRequest, settings_to_dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/token")
def register_token(body: PushTokenRequest, user_id: str = Depends(get_current_user),
                   services: Services = Depends(get_services)):
    if not is_expo_push_token(body.push_token):
        raise ValidationError("Invalid Expo push token")
    services.db.upsert_notification_state(user_id, push_token=body.push_token)
    return {'success': True, 'message': 'Push token registered'}


@router.delete("/token")
def remove_token(user_id: str = Depends(get_current_user), services: Services = Depends(get_services)):
    services.db.upsert_notification_state(user_id, push_token=None)
    return {'success': True, 'message': 'Push token removed'}


@router.get("/settings")
def get_settings(user_id: str = Depends(get_current_user), services: Services = Depends(get_services)):
    state = services.db.get_notification_state(user_id)
    return {'success': True, 'settings': settings_to_dict(state)}


@router.put("/settings")
def update_settings(body: NotificationSettingsUpdate, user_id: str = Depends(get_current_user),
                    services: Services = Depends(get_services)):
    changes = body.model_dump(exclude_none=True)
    state = services.db.upsert_notification_state(user_id, **changes)
    return {'success': True, 'settings': settings_to_dict(state)}
