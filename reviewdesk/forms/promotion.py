import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..api_client import ApiResult, MerchantsApi, PromotionsApi
from ..schemas import PROMOTION_TYPES
from .base import FormController, SubmitResult

logger = logging.getLogger(__name__)


class PromotionDraft(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    description: str = ""
    type: str = "common"
    start_date: str = ""
    end_date: str = ""
    giftcodes: str = ""
    login_required: bool = False
    review_required: bool = False

    def to_body(self, merchant_id: str, is_active: bool = True) -> Dict[str, Any]:
        return {
            "merchantId": merchant_id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "giftcodes": self.giftcodes,
            "loginRequired": self.login_required,
            "reviewRequired": self.review_required,
            "isActive": is_active,
        }


class MerchantOption(BaseModel):
    id: str
    name: str
    slug: str = ""


def draft_errors(index: int, draft: PromotionDraft) -> Dict[str, str]:
    errors = {}
    if not draft.title.strip():
        errors[f"promotions.{index}.title"] = "Title is required"
    if not draft.description.strip():
        errors[f"promotions.{index}.description"] = "Description is required"
    if not draft.type:
        errors[f"promotions.{index}.type"] = "Type is required"
    elif draft.type not in PROMOTION_TYPES:
        errors[f"promotions.{index}.type"] = "Invalid promotion type"
    return errors


async def search_merchants(api: MerchantsApi, text: str, limit: int = 10) -> List[MerchantOption]:
    """Merchant picker lookup; drafts are never offered."""
    if not text.strip():
        return []
    result = await api.search_public(text.strip(), limit=limit, exclude_drafts=True)
    if not result.ok:
        logger.warning("Merchant search failed: %s", result.error)
        return []
    data = result.data or {}
    items = data.get("merchants", []) if isinstance(data, dict) else data
    return [MerchantOption(id=str(m.get("id")), name=m.get("name") or "", slug=m.get("slug") or "") for m in items]


# ---------------------- Batch create ----------------------
class PromotionOutcome(BaseModel):
    index: int
    title: str
    ok: bool
    id: Optional[str] = None
    error: Optional[str] = None


class PromotionBatchValues(BaseModel):
    merchant_id: str = ""
    merchant_name: str = ""
    merchant_search: str = ""
    promotions: List[PromotionDraft] = Field(default_factory=lambda: [PromotionDraft()])


class PromotionBatchForm(FormController[PromotionBatchValues]):
    values_model = PromotionBatchValues
    entity_key = "promotion"
    list_path = "/admin/promotions"

    async def search_merchants(self, text: str) -> List[MerchantOption]:
        self.values = self.values.model_copy(update={"merchant_search": text, "merchant_id": "", "merchant_name": ""})
        return await search_merchants(MerchantsApi(self.client), text)

    def select_merchant(self, option: MerchantOption):
        self.values = self.values.model_copy(update={
            "merchant_id": option.id, "merchant_name": option.name, "merchant_search": option.name,
        })
        self.errors.pop("merchantId", None)

    def add_promotion(self) -> PromotionDraft:
        draft = PromotionDraft()
        self.values = self.values.model_copy(update={"promotions": self.values.promotions + [draft]})
        return draft

    def remove_promotion(self, index: int) -> bool:
        if len(self.values.promotions) <= 1:
            self.errors["promotions"] = "At least one promotion is required"
            return False
        promotions = [p for i, p in enumerate(self.values.promotions) if i != index]
        self.values = self.values.model_copy(update={"promotions": promotions})
        # field errors are keyed by position
        self.errors = {k: v for k, v in self.errors.items() if not k.startswith("promotions.")}
        return True

    def update_promotion(self, index: int, field: str, value: Any):
        promotions = list(self.values.promotions)
        promotions[index] = promotions[index].model_copy(update={field: value})
        self.values = self.values.model_copy(update={"promotions": promotions})
        self.errors.pop(f"promotions.{index}.{field}", None)

    def validate(self) -> Dict[str, str]:
        errors = {}
        if not self.values.merchant_id:
            errors["merchantId"] = "Please select a merchant"
        if not self.values.promotions:
            errors["promotions"] = "At least one promotion is required"
        for index, draft in enumerate(self.values.promotions):
            errors.update(draft_errors(index, draft))
        return errors

    async def submit(self, action: str = "publish") -> SubmitResult:
        if self.is_submitting:
            return SubmitResult(ok=False, errors=dict(self.errors))
        self.errors = self.validate()
        if self.errors:
            return SubmitResult(ok=False, errors=dict(self.errors))

        self.is_submitting = True
        self.active_action = action
        api = PromotionsApi(self.client)
        drafts = list(self.values.promotions)
        try:
            # one request per promotion; nothing is undone when some fail
            results = await asyncio.gather(*(api.create(d.to_body(self.values.merchant_id)) for d in drafts))
        finally:
            self.is_submitting = False
            self.active_action = None

        outcomes = [self._outcome(i, d, r) for i, (d, r) in enumerate(zip(drafts, results))]
        failed = [o for o in outcomes if not o.ok]
        created = len(outcomes) - len(failed)
        data = {"outcomes": [o.model_dump() for o in outcomes], "created": created, "failed": len(failed)}

        if not failed:
            data["message"] = f"{created} promotion(s) created successfully!"
            logger.info("Created %d promotions for merchant %s", created, self.values.merchant_id)
            return SubmitResult(ok=True, data=data, redirect=self.list_path, sent=True)

        for o in failed:
            logger.warning("Promotion %d (%s) failed: %s", o.index, o.title, o.error)
        if created:
            message = f"{created} of {len(outcomes)} promotions created, {len(failed)} failed"
        else:
            message = failed[0].error or "Failed to create promotion"
        data["message"] = message
        self.errors = {"general": message}
        # keep only the drafts that still need to be sent
        self.values = self.values.model_copy(update={"promotions": [drafts[o.index] for o in failed]})
        return SubmitResult(ok=False, errors=dict(self.errors), data=data, sent=True)

    @staticmethod
    def _outcome(index: int, draft: PromotionDraft, result: ApiResult) -> PromotionOutcome:
        if not result.ok:
            return PromotionOutcome(index=index, title=draft.title, ok=False, error=result.error)
        body = result.data if isinstance(result.data, dict) else {}
        record = body.get("promotion", body)
        return PromotionOutcome(index=index, title=draft.title, ok=True, id=str(record.get("id") or "") or None)


# ---------------------- Edit ----------------------
class PromotionEditValues(BaseModel):
    merchant_id: str = ""
    merchant_name: str = ""
    promotion: PromotionDraft = Field(default_factory=PromotionDraft)
    is_active: bool = True


class PromotionEditForm(FormController[PromotionEditValues]):
    values_model = PromotionEditValues
    entity_key = "promotion"
    list_path = "/admin/promotions"
    failure_message = "Failed to update promotion"

    async def fetch(self) -> ApiResult:
        return await PromotionsApi(self.client).get(self.entity_id)

    def from_record(self, p: Dict[str, Any]) -> PromotionEditValues:
        merchant = p.get("merchant") or {}
        return PromotionEditValues(
            merchant_id=p.get("merchantId") or merchant.get("id") or "",
            merchant_name=merchant.get("name") or "",
            promotion=PromotionDraft(
                id=str(p.get("id") or self.entity_id),
                title=p.get("title") or "",
                description=p.get("description") or "",
                type=(p.get("type") or "common").lower(),
                start_date=(p.get("startDate") or "")[:10],
                end_date=(p.get("endDate") or "")[:10],
                giftcodes=p.get("giftcodes") or "",
                login_required=bool(p.get("loginRequired")),
                review_required=bool(p.get("reviewRequired")),
            ),
            is_active=p.get("isActive", True),
        )

    def update_promotion(self, field: str, value: Any):
        self.values = self.values.model_copy(
            update={"promotion": self.values.promotion.model_copy(update={field: value})})
        self.errors.pop(f"promotions.0.{field}", None)

    def validate(self) -> Dict[str, str]:
        errors = {}
        if not self.values.merchant_id:
            errors["merchantId"] = "Please select a merchant"
        errors.update(draft_errors(0, self.values.promotion))
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        return self.values.promotion.to_body(self.values.merchant_id, self.values.is_active)

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        return await PromotionsApi(self.client).update(self.entity_id, payload)
