from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ...database import Urgency, UserAction
from ...database.models import utcnow
from ...errors import ValidationError
from ..deps import Services, get_current_user, get_services
from ..schemas import ActionRequest, SyncRequest, decision_to_dict, email_to_dict

router = APIRouter(prefix="/emails", tags=["emails"])


@router.post("/sync")
def sync_emails(
    body: Optional[SyncRequest] = None,
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Fetch new mail and classify it; per-message failures are reported, not raised."""
    max_results = body.max_results if body is not None else 10
    result = services.pipeline.sync(user_id, max_results=max_results)
    return {
        'success': True,
        'message': f"Successfully processed {len(result.processed)} emails",
        'emailsProcessed': len(result.processed),
        'emailsSkipped': len(result.skipped),
        'emailsFailed': len(result.failed),
        'failures': [
            {'externalMessageId': f.external_message_id, 'error': f.error} for f in result.failed
        ],
    }


@router.get("")
def list_emails(
    urgency: Optional[str] = Query(None),
    user_action: Optional[str] = Query(None, alias="userAction"),
    limit: int = Query(500, ge=1, le=500),
    user_id: str = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    try:
        urgency_filter = Urgency(urgency.upper()) if urgency else None
        action_filter = UserAction(user_action) if user_action else None
    except ValueError:
        raise ValidationError("Invalid urgency or userAction filter")

    emails = services.db.list_emails(user_id, urgency=urgency_filter, user_action=action_filter, limit=limit)
    return {'success': True, 'count': len(emails), 'emails': [email_to_dict(e) for e in emails]}


@router.get("/stats/overview")
def email_stats(user_id: str = Depends(get_current_user), services: Services = Depends(get_services)):
    return {'success': True, 'stats': services.db.email_stats(user_id)}


@router.get("/{email_id}")
def get_email(email_id: UUID, user_id: str = Depends(get_current_user),
              services: Services = Depends(get_services)):
    return {'success': True, 'email': email_to_dict(services.db.get_email(email_id, user_id=user_id))}


@router.post("/{email_id}/action")
def email_action(email_id: UUID, body: ActionRequest, user_id: str = Depends(get_current_user),
                 services: Services = Depends(get_services)):
    email, decision = services.decisions.apply_user_action(user_id, email_id, body.action)
    return {
        'success': True,
        'message': f"Email marked as {email.user_action}",
        'email': email_to_dict(email),
        'decision': decision_to_dict(decision) if decision is not None else None,
    }


@router.post("/{email_id}/read")
def mark_read(email_id: UUID, user_id: str = Depends(get_current_user),
              services: Services = Depends(get_services)):
    services.db.get_email(email_id, user_id=user_id)
    email = services.db.update_email(email_id, is_read=True, last_surfaced_at=utcnow())
    return {'success': True, 'email': email_to_dict(email)}


@router.post("/{email_id}/draft-reply")
def draft_reply(email_id: UUID, user_id: str = Depends(get_current_user),
                services: Services = Depends(get_services)):
    return dict(services.drafts.draft(user_id, email_id), success=True)


@router.delete("/{email_id}")
def delete_email(email_id: UUID, user_id: str = Depends(get_current_user),
                 services: Services = Depends(get_services)):
    services.db.get_email(email_id, user_id=user_id)
    services.db.delete_email(email_id)
    return {'success': True, 'message': 'Email deleted'}
