"""
Notification endpoints
"""

from fastapi import APIRouter, HTTPException, Depends

from .system import LedgerSystem, get_ledger_system, requires
from .schemas import SendReminderRequest
from ..capabilities import Capability, StaffRole


router = APIRouter()


@router.post("/send-reminder")
def send_reminder(
    request: SendReminderRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.SEND_NOTIFICATIONS))
):
    """Send one payment reminder, due-date alert or overdue alert to a customer now"""
    if not system.contract_manager.get_contract(request.contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")

    try:
        reminder, sent = system.reminder_service.send_reminder(
            request.contract_id, request.type, sent_by=request.sent_by or role.value
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not sent:
        raise HTTPException(status_code=502, detail=f"Failed to send {request.type.value}")

    return {
        "contract_id": request.contract_id,
        "type": request.type.value,
        "notification_type": reminder.notification_type.value,
        "recipient_id": reminder.recipient_id,
        "body": reminder.body,
        "sent_at": system.contract_manager.clock().isoformat()
    }
