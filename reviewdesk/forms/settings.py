"""
Spam-control settings: reCAPTCHA v2/v3 keys and the automatic spam
detection threshold.
"""
from typing import Any, Dict

from pydantic import BaseModel

from ..api_client import ApiResult, SettingsApi
from .base import FormController

SECRET_FIELDS = ("recaptcha_v2_secret_key", "recaptcha_v3_secret_key")
SECRET_MASK = "********"


class SecuritySettingsValues(BaseModel):
    enable_recaptcha_v2: bool = False
    recaptcha_v2_site_key: str = ""
    recaptcha_v2_secret_key: str = ""
    enable_recaptcha_v3: bool = False
    recaptcha_v3_site_key: str = ""
    recaptcha_v3_secret_key: str = ""
    recaptcha_v3_score_threshold: float = 0.5
    enable_auto_spam_detection: bool = True
    auto_spam_threshold: int = 75


class SecuritySettingsForm(FormController[SecuritySettingsValues]):
    values_model = SecuritySettingsValues
    entity_key = "settings"
    list_path = "/admin/settings/security"
    failure_message = "Failed to save security settings"

    async def fetch(self) -> ApiResult:
        return await SettingsApi(self.client).security()

    def from_record(self, s: Dict[str, Any]) -> SecuritySettingsValues:
        defaults = SecuritySettingsValues()
        return SecuritySettingsValues(
            enable_recaptcha_v2=bool(s.get("enableRecaptchaV2", defaults.enable_recaptcha_v2)),
            recaptcha_v2_site_key=s.get("recaptchaV2SiteKey") or "",
            recaptcha_v2_secret_key=s.get("recaptchaV2SecretKey") or "",
            enable_recaptcha_v3=bool(s.get("enableRecaptchaV3", defaults.enable_recaptcha_v3)),
            recaptcha_v3_site_key=s.get("recaptchaV3SiteKey") or "",
            recaptcha_v3_secret_key=s.get("recaptchaV3SecretKey") or "",
            recaptcha_v3_score_threshold=s.get("recaptchaV3ScoreThreshold", defaults.recaptcha_v3_score_threshold),
            enable_auto_spam_detection=bool(s.get("enableAutoSpamDetection", defaults.enable_auto_spam_detection)),
            auto_spam_threshold=s.get("autoSpamThreshold", defaults.auto_spam_threshold),
        )

    def set_field(self, name: str, value: Any):
        # a masked or blank secret leaves the stored one in place
        if name in SECRET_FIELDS and value in ("", SECRET_MASK, None):
            return
        super().set_field(name, value)

    def masked(self) -> Dict[str, Any]:
        data = self.values.model_dump()
        for name in SECRET_FIELDS:
            if data[name]:
                data[name] = SECRET_MASK
        return data

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if v.enable_recaptcha_v2:
            if not v.recaptcha_v2_site_key.strip():
                errors["recaptcha_v2_site_key"] = "Site key is required when reCAPTCHA v2 is enabled"
            if not v.recaptcha_v2_secret_key.strip():
                errors["recaptcha_v2_secret_key"] = "Secret key is required when reCAPTCHA v2 is enabled"
        if v.enable_recaptcha_v3:
            if not v.recaptcha_v3_site_key.strip():
                errors["recaptcha_v3_site_key"] = "Site key is required when reCAPTCHA v3 is enabled"
            if not v.recaptcha_v3_secret_key.strip():
                errors["recaptcha_v3_secret_key"] = "Secret key is required when reCAPTCHA v3 is enabled"
        if not 0 <= v.recaptcha_v3_score_threshold <= 1:
            errors["recaptcha_v3_score_threshold"] = "Score threshold must be between 0 and 1"
        if not 0 <= v.auto_spam_threshold <= 100:
            errors["auto_spam_threshold"] = "Spam threshold must be between 0 and 100"
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        v = self.values
        return {
            "enableRecaptchaV2": v.enable_recaptcha_v2,
            "recaptchaV2SiteKey": v.recaptcha_v2_site_key.strip(),
            "recaptchaV2SecretKey": v.recaptcha_v2_secret_key.strip(),
            "enableRecaptchaV3": v.enable_recaptcha_v3,
            "recaptchaV3SiteKey": v.recaptcha_v3_site_key.strip(),
            "recaptchaV3SecretKey": v.recaptcha_v3_secret_key.strip(),
            "recaptchaV3ScoreThreshold": v.recaptcha_v3_score_threshold,
            "enableAutoSpamDetection": v.enable_auto_spam_detection,
            "autoSpamThreshold": v.auto_spam_threshold,
        }

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        return await SettingsApi(self.client).update_security(payload)
