"""Price alert schemas.

Stored alerts come from a JSON document that has been written by several
generations of code, so parsing is lenient: timestamps may be ISO strings or
epoch milliseconds, and ``targetPrice`` may be a number or a numeric string.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime.

    Accepts datetimes, epoch milliseconds (int, float or digit string) and
    ISO-8601 strings. Returns None for empty or unparseable values.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return EPOCH + timedelta(milliseconds=float(value))
        except (OverflowError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return EPOCH + timedelta(milliseconds=float(text))
        except (OverflowError, ValueError):
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def to_number(value: Any) -> Optional[float]:
    """Coerce a stringly-typed amount ("$100", "95.5") into a float.

    Returns None when no number can be recovered.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = "".join(ch for ch in str(value) if ch.isdigit() or ch == ".")
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


class Alert(BaseModel):
    """A user's standing subscription to be notified of matching deals."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str
    email: str
    brand: str = ""
    model: str = ""
    gender: Optional[str] = None
    target_price: Union[int, float, str, None] = None
    set_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    last_notified_at: Optional[datetime] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> str:
        return str(v or "").strip().lower()

    @field_validator("brand", "model", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("set_at", "last_notified_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("cancelled_at", mode="before")
    @classmethod
    def coerce_cancelled(cls, v: Any) -> Optional[datetime]:
        """Any truthy cancellation marker cancels, even an unparseable one."""
        parsed = parse_timestamp(v)
        if parsed is None and v:
            return EPOCH
        return parsed

    def expires_at(self, ttl_days: int) -> Optional[datetime]:
        if self.set_at is None:
            return None
        return self.set_at + timedelta(days=ttl_days)

    def is_expired(self, now: datetime, ttl_days: int) -> bool:
        """An alert with no usable creation time is treated as expired."""
        expires = self.expires_at(ttl_days)
        return expires is None or now >= expires

    def is_active(self, now: datetime, ttl_days: int) -> bool:
        return self.cancelled_at is None and not self.is_expired(now, ttl_days)

    def days_remaining(self, now: datetime, ttl_days: int) -> int:
        if self.set_at is None:
            return 0
        age_days = int((now - self.set_at).total_seconds() // 86400)
        return max(0, ttl_days - age_days)

    def to_document(self) -> Dict[str, Any]:
        """Serialize for the alerts document."""
        return self.model_dump(by_alias=True, mode="json")


class AlertCreateRequest(BaseModel):
    """Request body for creating an alert."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str = Field("", max_length=254)
    brand: str = Field("", max_length=200)
    model: str = Field("", max_length=200)
    target_price: Union[int, float, str, None] = None
    gender: Optional[str] = None


class AlertManageRequest(BaseModel):
    """Request body for cancel/update/remove through a signed link."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: str = ""
    alert_id: str = ""
    t: str = ""
    target_price: Union[int, float, str, None] = None


class AlertListResponse(BaseModel):
    """Alerts belonging to the email in a verified link token."""

    success: bool = True
    alerts: List[Dict[str, Any]]
    count: int
