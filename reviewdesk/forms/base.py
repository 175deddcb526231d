"""
Shared form-controller machinery: field state, error map, submit guard,
hydration helpers and dirty tracking.
"""
import logging
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from ..api_client import NETWORK_ERROR, ApiClient, ApiResult, FormPayload
from ..slugs import SlugField

logger = logging.getLogger(__name__)

FORM_NETWORK_ERROR = "Network error. Please try again."

V = TypeVar("V", bound=BaseModel)


def lookup(record: Any, path: str) -> Any:
    value = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def pick(record: Dict[str, Any], *paths: str, default: Any = "") -> Any:
    """First non-empty value among ``paths`` (dotted keys allowed)."""
    for path in paths:
        value = lookup(record, path)
        if value not in (None, "", [], {}):
            return value
    return default


def unwrap_entity(data: Any, key: str) -> Dict[str, Any]:
    """Single-resource bodies come as ``{key: {...}}`` or as the bare record."""
    if isinstance(data, dict) and isinstance(data.get(key), dict):
        return data[key]
    return data if isinstance(data, dict) else {}


class SubmitResult(BaseModel):
    ok: bool
    errors: Dict[str, str] = {}
    data: Optional[Any] = None
    redirect: Optional[str] = None
    # False when the submit was refused before any request was sent
    sent: bool = False
    status_code: Optional[int] = None


class FormController(Generic[V]):
    values_model: Type[BaseModel]
    entity_key: str = ""
    list_path: str = "/admin"
    failure_message: str = "Failed to save"
    # field the slug follows until it is edited by hand
    slug_source: Optional[str] = None

    def __init__(self, client: ApiClient, entity_id: Optional[str] = None, values: Optional[V] = None):
        self.client = client
        self.entity_id = entity_id
        self.values: V = values or self.values_model()
        self.snapshot: V = self.values.model_copy(deep=True)
        self.errors: Dict[str, str] = {}
        self.is_submitting = False
        self.active_action: Optional[str] = None
        self.record: Dict[str, Any] = {}

    @property
    def is_edit(self) -> bool:
        return self.entity_id is not None

    # ---------------------- Loading ----------------------
    async def fetch(self) -> ApiResult:
        raise NotImplementedError

    def from_record(self, record: Dict[str, Any]) -> V:
        raise NotImplementedError

    async def load(self) -> ApiResult:
        result = await self.fetch()
        if not result.ok:
            logger.warning("Failed to load %s %s: %s", self.entity_key, self.entity_id, result.error)
            return result
        self.hydrate(unwrap_entity(result.data, self.entity_key))
        return result

    def hydrate(self, record: Dict[str, Any]):
        self.record = record
        self.values = self.from_record(record)
        self.snapshot = self.values.model_copy(deep=True)
        self.errors = {}

    # ---------------------- Editing ----------------------
    def set_field(self, name: str, value: Any):
        self.values = self.values.model_copy(update={name: value})
        self.errors.pop(name, None)
        if self.slug_source and name in (self.slug_source, "slug"):
            self._sync_slug(name, value)

    def _sync_slug(self, name: str, value: Any):
        field = SlugField(value=self.values.slug, manually_edited=self.values.slug_manually_edited)
        if name == "slug":
            field = field.edit(value, getattr(self.values, self.slug_source))
        else:
            field = field.source_changed(value)
        self.values = self.values.model_copy(update={"slug": field.value, "slug_manually_edited": field.manually_edited})
        self.errors.pop("slug", None)

    def update(self, **changes):
        for name, value in changes.items():
            self.set_field(name, value)

    @property
    def is_dirty(self) -> bool:
        return self.values.model_dump() != self.snapshot.model_dump()

    def discard(self):
        self.values = self.snapshot.model_copy(deep=True)
        self.errors = {}

    # ---------------------- Submitting ----------------------
    def validate(self) -> Dict[str, str]:
        return {}

    def build_payload(self, action: str) -> Any:
        raise NotImplementedError

    async def send(self, payload: Any) -> ApiResult:
        raise NotImplementedError

    def redirect_path(self, data: Any) -> str:
        return self.list_path

    async def submit(self, action: str = "publish") -> SubmitResult:
        if self.is_submitting:
            return SubmitResult(ok=False, errors=dict(self.errors))

        self.errors = self.validate()
        if self.errors:
            return SubmitResult(ok=False, errors=dict(self.errors))

        self.is_submitting = True
        self.active_action = action
        try:
            payload = self.build_payload(action)
            result = await self.send(payload)
        finally:
            self.is_submitting = False
            self.active_action = None

        if not result.ok:
            if result.error == NETWORK_ERROR and result.status_code is None:
                self.errors = {"general": FORM_NETWORK_ERROR}
            else:
                self.errors = {"general": result.error or self.failure_message}
            return SubmitResult(ok=False, errors=dict(self.errors), sent=True, status_code=result.status_code)

        logger.info("Saved %s %s (%s)", self.entity_key, self.entity_id or "new", action)
        self.snapshot = self.values.model_copy(deep=True)
        return SubmitResult(ok=True, data=result.data, redirect=self.redirect_path(result.data), sent=True)


def multipart(data: Dict[str, Any], files=None, bracketed=None) -> FormPayload:
    return FormPayload(data=data, files=list(files or []), bracketed=list(bracketed or []))
