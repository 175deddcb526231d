"""
Slug helpers (Vietnamese-aware) and the slug field that follows a
source field until it is edited by hand.
"""
import re
import unicodedata
from typing import List, Optional, Tuple

from pydantic import BaseModel

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
MIN_LENGTH = 2
MAX_LENGTH = 100
AUTO_MAX_LENGTH = 50


def normalize_vietnamese(text: str) -> str:
    text = text.replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def slugify(text: Optional[str]) -> str:
    if not text:
        return ""
    text = normalize_vietnamese(text).lower().strip()
    text = re.sub(r"[\s_,.|\\/]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def auto_slug(text: Optional[str], max_length: int = AUTO_MAX_LENGTH) -> str:
    slug = slugify(text)
    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def validate_slug_format(slug: Optional[str]) -> Tuple[bool, Optional[str]]:
    """(is_valid, first error message)."""
    errors = _format_errors(slug)
    return (not errors, errors[0] if errors else None)


def slug_errors(slug: Optional[str]) -> List[str]:
    """Every problem with ``slug``, length limits included."""
    if not slug:
        return ["Slug is required"]
    errors = _format_errors(slug)
    if len(slug) < MIN_LENGTH:
        errors.append(f"Slug must be at least {MIN_LENGTH} characters long")
    if len(slug) > MAX_LENGTH:
        errors.append(f"Slug cannot be longer than {MAX_LENGTH} characters")
    return errors


def _format_errors(slug: Optional[str]) -> List[str]:
    if not slug:
        return ["Slug is required"]
    errors = []
    if not SLUG_RE.match(slug):
        errors.append("Slug can only contain lowercase letters, numbers, and hyphens")
    if slug.startswith("-") or slug.endswith("-"):
        errors.append("Slug cannot start or end with a hyphen")
    if "--" in slug:
        errors.append("Slug cannot contain consecutive hyphens")
    return errors


def slug_preview(slug: str, base_url: str = "") -> str:
    if not slug:
        return ""
    clean = slugify(slug)
    return f"{base_url.rstrip('/')}/{clean}" if base_url else clean


class SlugField(BaseModel):
    """Slug value plus whether the user has taken it over from the source field."""
    value: str = ""
    manually_edited: bool = False

    @classmethod
    def hydrate(cls, slug: Optional[str], source: Optional[str]) -> "SlugField":
        slug = slug or ""
        return cls(value=slug, manually_edited=bool(slug) and slug != auto_slug(source))

    def source_changed(self, source: Optional[str]) -> "SlugField":
        if self.manually_edited:
            return self
        return self.model_copy(update={"value": auto_slug(source)})

    def edit(self, value: Optional[str], source: Optional[str] = None) -> "SlugField":
        value = value or ""
        if not value:
            # clearing the field hands it back to auto-generation
            return SlugField(value=auto_slug(source), manually_edited=False)
        return SlugField(value=value, manually_edited=True)

    def errors(self) -> List[str]:
        return slug_errors(self.value)
