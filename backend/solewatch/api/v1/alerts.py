"""Price alert API endpoints.

Alerts are anonymous: they are created with an email address and managed
afterwards only through the signed link sent to that address.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from solewatch.config import settings
from solewatch.core.exceptions import (
    AlertLimitExceededError,
    AlertNotFoundError,
    AlertValidationError,
    ConfigurationError,
    InvalidAlertStateError,
)
from solewatch.core.tokens import verify_token
from solewatch.dependencies import get_alert_service, get_notification_service
from solewatch.schemas.alert import AlertCreateRequest, AlertListResponse, AlertManageRequest
from solewatch.schemas.common import ApiResponse
from solewatch.services.alert_service import AlertService
from solewatch.services.notification_service import NotificationService

router = APIRouter()


def _email_from_token(token: str) -> str:
    try:
        payload = verify_token(token, settings.ALERTS_LINK_SECRET)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=e.message)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired link")
    return str(payload["email"]).strip().lower()


@router.post("", response_model=ApiResponse, status_code=201)
async def create_alert(
    body: AlertCreateRequest,
    service: AlertService = Depends(get_alert_service),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Create an alert and send a confirmation email.

    The alert is stored even when the confirmation email fails.
    """
    try:
        created = await service.create_alert(
            email=body.email,
            brand=body.brand,
            model=body.model,
            target_price=body.target_price,
            gender=body.gender,
        )
    except AlertValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except AlertLimitExceededError as e:
        raise HTTPException(
            status_code=429,
            detail={"error": e.message, "currentCount": e.current},
        )

    confirmation = await notifications.send_confirmation(created.alert)

    return ApiResponse(
        status="success",
        data={
            "alert": created.alert.to_document(),
            "confirmationSent": confirmation.sent,
        },
        message="Alert created! Check your email for confirmation.",
    )


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    t: str = Query(..., description="Signed manage-link token"),
    service: AlertService = Depends(get_alert_service),
):
    """List every alert of the email the link was issued to."""
    email = _email_from_token(t)
    alerts = await service.list_alerts(email)
    return AlertListResponse(
        alerts=[alert.to_document() for alert in alerts],
        count=len(alerts),
    )


@router.post("/manage", response_model=ApiResponse)
async def manage_alert(
    body: AlertManageRequest,
    service: AlertService = Depends(get_alert_service),
):
    """Cancel, update or remove an alert through a signed link."""
    if not body.action or not body.alert_id or not body.t:
        raise HTTPException(status_code=400, detail="Action, alert ID, and token are required")

    email = _email_from_token(body.t)

    try:
        if body.action == "cancel":
            await service.cancel_alert(email, body.alert_id)
            return ApiResponse(status="success", data=None, message="Alert cancelled successfully")

        if body.action == "update":
            alert = await service.update_target_price(email, body.alert_id, body.target_price)
            return ApiResponse(
                status="success",
                data=alert.to_document(),
                message=f"Alert updated and reset to {settings.ALERT_TTL_DAYS} days",
            )

        if body.action == "remove":
            await service.remove_alert(email, body.alert_id)
            return ApiResponse(status="success", data=None, message="Alert removed")

    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail="Alert not found")
    except (AlertValidationError, InvalidAlertStateError) as e:
        raise HTTPException(status_code=400, detail=e.message)

    raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")
