from uuid import UUID

from fastapi import APIRouter, Depends

from ..deps import Services, get_current_user, get_services
from ..schemas import ResolveRequest, decision_to_dict

router = APIRouter(prefix="/decisions", tags=["decisions"])


@router.get("/pending")
def pending_decisions(user_id: str = Depends(get_current_user), services: Services = Depends(get_services)):
    """Due decisions, oldest first, at most three at a time."""
    decisions = services.decisions.list_pending(user_id)
    return {'success': True, 'decisions': [decision_to_dict(d) for d in decisions]}


@router.post("/{decision_id}/resolve")
def resolve_decision(decision_id: UUID, body: ResolveRequest, user_id: str = Depends(get_current_user),
                     services: Services = Depends(get_services)):
    decision = services.decisions.resolve(user_id, decision_id, body.resolution)
    return {
        'success': True,
        'message': f"Decision {body.resolution.lower()}",
        'decision': decision_to_dict(decision),
    }
