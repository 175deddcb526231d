"""
Controlled field widgets.

Each widget holds the current value of one form section and calls its
``on_change`` callback with the full updated sub-object after every edit.
Widgets do basic size/type/length checks only; required-field rules live
in the form controllers.
"""
import base64
import io
import logging
import re
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from .api_client import UploadedFile
from .sanitize import ContentCheck, ContentRules, RICH_TAGS, count_characters, sanitize_html, validate_content
from .schemas import FaqItem, SeoSettings, UtmParams
from .slugs import SlugField

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * 1024


class Widget:
    def __init__(self, on_change: Optional[Callable] = None):
        self.on_change = on_change

    def emit(self, value):
        if self.on_change is not None:
            self.on_change(value)
        return value


# ---------------------- Slug ----------------------
class SlugInput(Widget):
    def __init__(self, initial: Optional[str] = None, source: Optional[str] = None, on_change=None):
        super().__init__(on_change)
        self.source = source or ""
        self.field = SlugField.hydrate(initial, self.source)

    @property
    def value(self) -> str:
        return self.field.value

    def set_source(self, source: Optional[str]) -> str:
        self.source = source or ""
        self.field = self.field.source_changed(self.source)
        return self.emit(self.field.value)

    def set_value(self, value: Optional[str]) -> str:
        self.field = self.field.edit(value, self.source)
        return self.emit(self.field.value)


# ---------------------- Rich text ----------------------
class RichTextEditor(Widget):
    def __init__(self, initial: str = "", on_change=None, rules: Optional[ContentRules] = None,
                 tags: Optional[List[str]] = None):
        super().__init__(on_change)
        self.rules = rules or ContentRules()
        self.tags = tags or RICH_TAGS
        self.html = sanitize_html(initial, self.tags)

    def set_html(self, html: str) -> str:
        self.html = sanitize_html(html, self.tags)
        return self.emit(self.html)

    @property
    def char_count(self) -> int:
        return count_characters(self.html)

    def check(self) -> ContentCheck:
        return validate_content(self.html, self.rules)


# ---------------------- Files ----------------------
def data_url(file: UploadedFile) -> str:
    encoded = base64.b64encode(file.content).decode("ascii")
    return f"data:{file.content_type};base64,{encoded}"


def matches_accept(content_type: str, accept: str) -> bool:
    if accept in ("*", "*/*", ""):
        return True
    patterns = [p.strip() for p in accept.split(",") if p.strip()]
    for pattern in patterns:
        regex = "^" + re.escape(pattern).replace(r"\*", ".*") + "$"
        if re.match(regex, content_type or ""):
            return True
    return False


class FileUpload(Widget):
    def __init__(self, accept: str = "image/*", max_size: int = 5 * MB, preview: bool = True,
                 current_url: Optional[str] = None, on_change=None):
        super().__init__(on_change)
        self.accept = accept
        self.max_size = max_size
        self.preview = preview
        self.file: Optional[UploadedFile] = None
        self.preview_url: Optional[str] = current_url
        self.error: Optional[str] = None

    def select(self, file: UploadedFile) -> Optional[UploadedFile]:
        self.error = None
        if file.size > self.max_size:
            self.error = f"File size must be less than {round(self.max_size / MB)}MB"
            return None
        if not matches_accept(file.content_type, self.accept):
            self.error = "Invalid file type"
            return None
        self.file = file
        if self.preview and file.content_type.startswith("image/"):
            self.preview_url = data_url(file)
        self.emit(file)
        return file

    def clear(self):
        self.file = None
        self.preview_url = None
        self.error = None
        self.emit(None)


# ---------------------- SEO ----------------------
SEO_TITLE_MAX = 60
SEO_DESCRIPTION_MAX = 160
SEO_IMAGE_MAX = 300 * KB


class SeoWidget(Widget):
    def __init__(self, initial: Optional[SeoSettings] = None, on_change=None):
        super().__init__(on_change)
        self.value = initial or SeoSettings()
        self.image_file: Optional[UploadedFile] = None
        self.errors: Dict[str, str] = {}

    def set_field(self, field: str, value: str) -> SeoSettings:
        self.errors.pop(f"seo_{field}", None)
        if field == "title" and len(value) > SEO_TITLE_MAX:
            self.errors["seo_title"] = "SEO title should be 60 characters or less for optimal display"
            value = value[:SEO_TITLE_MAX]
        elif field == "description" and len(value) > SEO_DESCRIPTION_MAX:
            self.errors["seo_description"] = "Meta description should be 160 characters or less for optimal display"
            value = value[:SEO_DESCRIPTION_MAX]
        self.value = self.value.model_copy(update={field: value})
        return self.emit(self.value)

    def counters(self) -> Dict[str, str]:
        return {
            "title": f"{len(self.value.title)}/{SEO_TITLE_MAX}",
            "description": f"{len(self.value.description)}/{SEO_DESCRIPTION_MAX}",
        }

    def set_image(self, file: UploadedFile) -> Optional[UploadedFile]:
        self.errors.pop("seo_image", None)
        if file.size > SEO_IMAGE_MAX:
            self.errors["seo_image"] = "Image size must be less than 300KB"
            return None
        if not file.content_type.startswith("image/"):
            self.errors["seo_image"] = "Invalid file type"
            return None
        self.image_file = file
        self.value = self.value.model_copy(update={"image": None})
        self.emit(self.value)
        return file


# ---------------------- UTM ----------------------
UTM_PLACEHOLDER = "https://xxxx.xxx/...."


def utm_preview(utm: UtmParams) -> str:
    if not utm.target_url:
        return UTM_PLACEHOLDER
    parts = urlsplit(utm.target_url)
    if not parts.scheme or not parts.netloc:
        return utm.target_url
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key in ("source", "medium", "campaign", "content", "term"):
        value = getattr(utm, key)
        if value:
            query[f"utm_{key}"] = value
    path = parts.path or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), parts.fragment))


class UtmTracking(Widget):
    def __init__(self, initial: Optional[UtmParams] = None, on_change=None):
        super().__init__(on_change)
        self.value = initial or UtmParams()

    def set_field(self, field: str, value: str) -> UtmParams:
        self.value = self.value.model_copy(update={field: value})
        return self.emit(self.value)

    @property
    def preview_url(self) -> str:
        return utm_preview(self.value)


# ---------------------- FAQ ----------------------
class FaqEditor(Widget):
    def __init__(self, initial: Optional[List[FaqItem]] = None, on_change=None):
        super().__init__(on_change)
        self.items = list(initial) if initial else [FaqItem(id="1")]

    def _emit(self) -> List[FaqItem]:
        return self.emit(list(self.items))

    def edit(self, item_id: str, question: Optional[str] = None, answer: Optional[str] = None) -> List[FaqItem]:
        updated = []
        for item in self.items:
            if item.id == item_id:
                changes = {}
                if question is not None:
                    changes["question"] = question
                if answer is not None:
                    changes["answer"] = answer
                item = item.model_copy(update=changes)
            updated.append(item)
        self.items = updated
        return self._emit()

    def add(self) -> List[FaqItem]:
        self.items.append(FaqItem(id=str(len(self.items) + 1)))
        return self._emit()

    def remove(self, item_id: str) -> List[FaqItem]:
        if len(self.items) <= 1:
            self.items = [i.model_copy(update={"question": "", "answer": ""}) if i.id == item_id else i
                          for i in self.items]
            return self._emit()
        remaining = [i for i in self.items if i.id != item_id]
        self.items = [i.model_copy(update={"id": str(n)}) for n, i in enumerate(remaining, start=1)]
        return self._emit()


# ---------------------- Screenshots ----------------------
SCREENSHOT_MAX = 300 * KB
SCREENSHOT_LIMIT = 5
DESKTOP_RATIO = 16 / 10
MOBILE_RATIO = 9 / 16
RATIO_TOLERANCE = 0.1


class ImagePreview(BaseModel):
    file: UploadedFile
    preview_url: str = ""
    error: Optional[str] = None


class ScreenshotSet(BaseModel):
    desktop: List[UploadedFile] = []
    mobile: List[UploadedFile] = []


def validate_image(file: UploadedFile, expected_ratio: float, max_size: int,
                   tolerance: float = RATIO_TOLERANCE) -> Optional[str]:
    if file.size > max_size:
        return f"File size must be less than {max_size // KB}KB"
    try:
        with Image.open(io.BytesIO(file.content)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        return "Invalid image file"
    ratio = width / height
    if abs(ratio - expected_ratio) > tolerance:
        return f"Incorrect aspect ratio. Expected {expected_ratio:.2f}:1, got {ratio:.2f}:1"
    return None


class Screenshots(Widget):
    def __init__(self, on_change=None):
        super().__init__(on_change)
        self.desktop: List[ImagePreview] = []
        self.mobile: List[ImagePreview] = []
        self.error: Optional[str] = None

    def value(self) -> ScreenshotSet:
        # previews with an error stay on screen but are not submitted
        return ScreenshotSet(
            desktop=[p.file for p in self.desktop if not p.error],
            mobile=[p.file for p in self.mobile if not p.error],
        )

    def _add(self, previews: List[ImagePreview], files: List[UploadedFile], ratio: float, label: str):
        self.error = None
        if len(previews) + len(files) > SCREENSHOT_LIMIT:
            self.error = f"Maximum {SCREENSHOT_LIMIT} {label} screenshots allowed"
            return self.value()
        for file in files:
            error = validate_image(file, ratio, SCREENSHOT_MAX)
            if error:
                logger.info("Rejected %s screenshot %s: %s", label, file.filename, error)
            previews.append(ImagePreview(file=file, preview_url=data_url(file), error=error))
        return self.emit(self.value())

    def add_desktop(self, files: List[UploadedFile]) -> ScreenshotSet:
        return self._add(self.desktop, files, DESKTOP_RATIO, "desktop")

    def add_mobile(self, files: List[UploadedFile]) -> ScreenshotSet:
        return self._add(self.mobile, files, MOBILE_RATIO, "mobile")

    def remove_desktop(self, index: int) -> ScreenshotSet:
        del self.desktop[index]
        return self.emit(self.value())

    def remove_mobile(self, index: int) -> ScreenshotSet:
        del self.mobile[index]
        return self.emit(self.value())


# ---------------------- Tags ----------------------
def parse_tags(text: Optional[str]) -> List[str]:
    """Comma-separated tags, deduplicated case-insensitively, first spelling kept."""
    seen = set()
    tags = []
    for raw in (text or "").split(","):
        tag = raw.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


class TagInput(Widget):
    def __init__(self, initial: Optional[List[str]] = None, on_change=None):
        super().__init__(on_change)
        self.tags = parse_tags(",".join(initial or []))

    @property
    def text(self) -> str:
        return ", ".join(self.tags)

    def set_text(self, text: str) -> List[str]:
        self.tags = parse_tags(text)
        return self.emit(list(self.tags))
