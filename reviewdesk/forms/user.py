import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from ..api_client import ApiResult, UsersApi
from ..lifecycle import user_lifecycle
from .base import FormController, SubmitResult
from .post import parse_datetime

ROLES = ["user", "merchant", "moderator", "administrator"]
SUSPENSION_TYPES = ["account", "email"]
MIN_PASSWORD = 8
MAX_SUSPENSION_DAYS = 365
DEFAULT_SUSPENSION_DAYS = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------- Create user ----------------------
class UserValues(BaseModel):
    email: str = ""
    display_name: str = ""
    phone_number: str = ""
    password: str = ""
    require_password_reset: bool = False
    role: str = "user"


class UserForm(FormController[UserValues]):
    values_model = UserValues
    entity_key = "user"
    list_path = "/admin/users"
    failure_message = "Failed to create user"

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if not v.email.strip():
            errors["email"] = "Email is required"
        elif "@" not in v.email:
            errors["email"] = "Email is invalid"
        if len(v.password) < MIN_PASSWORD:
            errors["password"] = f"Password must be at least {MIN_PASSWORD} characters"
        if v.role not in ROLES:
            errors["role"] = "Invalid role"
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        v = self.values
        return {
            "email": v.email.strip(),
            "displayName": v.display_name.strip() or v.email.split("@")[0],
            "phoneNumber": v.phone_number or None,
            "password": v.password,
            "requirePasswordReset": v.require_password_reset,
            "role": v.role,
            "status": user_lifecycle.next_status(None, "create"),
        }

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        return await UsersApi(self.client).create(payload)


# ---------------------- Suspension ----------------------
class SuspensionValues(BaseModel):
    suspension_type: str = Field("account", description="account: this account only; email: block the address")
    reason: str = ""
    duration: int = DEFAULT_SUSPENSION_DAYS
    suspended_until: str = ""
    permanent: bool = False


def suspension_type_of(record: Dict[str, Any]) -> str:
    explicit = record.get("suspensionType")
    if explicit in SUSPENSION_TYPES:
        return explicit
    # older records only mark email bans inside the reason text
    return "email" if "(email)" in (record.get("suspendedReason") or "") else "account"


class SuspensionForm(FormController[SuspensionValues]):
    values_model = SuspensionValues
    entity_key = "user"
    list_path = "/admin/users/suspended"
    failure_message = "Failed to update suspension"

    def __init__(self, *args, clock: Callable[[], datetime] = utcnow, **kwargs):
        super().__init__(*args, **kwargs)
        self.clock = clock

    async def fetch(self) -> ApiResult:
        return await UsersApi(self.client).get(self.entity_id)

    def from_record(self, u: Dict[str, Any]) -> SuspensionValues:
        until = parse_datetime(u.get("suspendedUntil"))
        duration = DEFAULT_SUSPENSION_DAYS
        if until is not None:
            duration = max(1, (until - self.clock()).days)
        return SuspensionValues(
            suspension_type=suspension_type_of(u),
            reason=u.get("suspendedReason") or "",
            duration=duration,
            suspended_until=until.date().isoformat() if until else "",
            permanent=until is None,
        )

    def set_field(self, name: str, value: Any):
        super().set_field(name, value)
        if name == "permanent" and value:
            self.values = self.values.model_copy(update={"suspended_until": ""})

    def preview_until(self) -> Optional[date]:
        if self.values.permanent:
            return None
        return (self.clock() + timedelta(days=self.values.duration)).date()

    def duration_days(self) -> int:
        v = self.values
        if v.permanent:
            return MAX_SUSPENSION_DAYS
        if v.suspended_until:
            until = parse_datetime(v.suspended_until)
            days = math.ceil((until - self.clock()).total_seconds() / 86400)
        else:
            days = v.duration
        return max(1, min(MAX_SUSPENSION_DAYS, days))

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if v.suspension_type not in SUSPENSION_TYPES:
            errors["suspension_type"] = "Invalid suspension type"
        if not v.permanent and v.suspended_until and parse_datetime(v.suspended_until) is None:
            errors["suspended_until"] = "Invalid date"
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        current = self.record.get("status", "active") if self.record else "active"
        return {
            "status": user_lifecycle.next_status(current, "suspend"),
            "suspensionType": self.values.suspension_type,
            "suspensionReason": self.values.reason,
            "suspensionDuration": self.duration_days(),
        }

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        return await UsersApi(self.client).update_status(self.entity_id, payload)

    async def unsuspend(self) -> SubmitResult:
        current = self.record.get("status", "suspended") if self.record else "suspended"
        status = user_lifecycle.next_status(current, "unsuspend")
        result = await UsersApi(self.client).update_status(self.entity_id, {"status": status})
        if not result.ok:
            self.errors = {"general": result.error}
            return SubmitResult(ok=False, errors=dict(self.errors), sent=True)
        return SubmitResult(ok=True, data=result.data, redirect=self.list_path, sent=True)
