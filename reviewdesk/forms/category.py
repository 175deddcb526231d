from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel

from ..api_client import ApiResult, ContentApi
from ..slugs import SlugField, validate_slug_format
from .base import FormController


class CategoryOption(BaseModel):
    id: str
    name: str
    level: int = 0
    parent_id: Optional[str] = None

    @property
    def label(self) -> str:
        return "— " * self.level + self.name


def flatten_categories(tree: List[Dict[str, Any]], level: int = 0,
                       parent_id: Optional[str] = None) -> List[CategoryOption]:
    """Depth-first list of a category tree, for parent dropdowns."""
    options = []
    for node in tree:
        options.append(CategoryOption(id=str(node.get("id")), name=node.get("name") or "", level=level,
                                      parent_id=node.get("parentId") or parent_id))
        options.extend(flatten_categories(node.get("children") or [], level + 1, str(node.get("id"))))
    return options


def descendant_ids(options: List[CategoryOption], root_id: str) -> Set[str]:
    children: Dict[str, List[str]] = {}
    for option in options:
        if option.parent_id:
            children.setdefault(option.parent_id, []).append(option.id)
    found, stack = set(), [root_id]
    while stack:
        for child in children.get(stack.pop(), []):
            if child not in found:
                found.add(child)
                stack.append(child)
    return found


def parent_options(tree: List[Dict[str, Any]], exclude_id: Optional[str] = None) -> List[CategoryOption]:
    options = flatten_categories(tree)
    if exclude_id is None:
        return options
    blocked = descendant_ids(options, exclude_id) | {exclude_id}
    return [o for o in options if o.id not in blocked]


class CategoryValues(BaseModel):
    name: str = ""
    slug: str = ""
    slug_manually_edited: bool = False
    description: str = ""
    parent_id: Optional[str] = None
    display_order: int = 0
    allow_comments: bool = True
    hide_ads: bool = False
    is_active: bool = True
    meta_title: str = ""
    meta_description: str = ""


class CategoryForm(FormController[CategoryValues]):
    values_model = CategoryValues
    entity_key = "category"
    list_path = "/admin/posts/categories"
    slug_source = "name"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tree: List[Dict[str, Any]] = []

    @property
    def failure_message(self) -> str:
        return "Failed to update category" if self.is_edit else "Failed to create category"

    async def load_tree(self) -> ApiResult:
        result = await ContentApi(self.client).list_categories(include_inactive=True)
        if result.ok:
            data = result.data
            self.tree = data.get("categories", []) if isinstance(data, dict) else (data or [])
        return result

    async def fetch(self) -> ApiResult:
        # no single-category endpoint; the record is taken from the tree
        result = await self.load_tree()
        if not result.ok:
            return result
        found = self._find(self.tree, self.entity_id)
        if found is None:
            return ApiResult(error="Category not found", status_code=404)
        return ApiResult(data={"category": found}, status_code=200)

    def _find(self, nodes: List[Dict[str, Any]], category_id: str) -> Optional[Dict[str, Any]]:
        for node in nodes:
            if str(node.get("id")) == str(category_id):
                return node
            found = self._find(node.get("children") or [], category_id)
            if found is not None:
                return found
        return None

    def from_record(self, c: Dict[str, Any]) -> CategoryValues:
        name = c.get("name") or ""
        slug = SlugField.hydrate(c.get("slug"), name)
        return CategoryValues(
            name=name,
            slug=slug.value,
            slug_manually_edited=slug.manually_edited,
            description=c.get("description") or "",
            parent_id=c.get("parentId"),
            display_order=int(c.get("displayOrder") or 0),
            allow_comments=c.get("allowComments", True),
            hide_ads=bool(c.get("hideAds")),
            is_active=c.get("isActive", True),
            meta_title=c.get("metaTitle") or "",
            meta_description=c.get("metaDescription") or "",
        )

    def options(self) -> List[CategoryOption]:
        return parent_options(self.tree, self.entity_id)

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if not v.name.strip():
            errors["name"] = "Category name is required"
        valid, error = validate_slug_format(v.slug)
        if not valid:
            errors["slug"] = error
        if v.parent_id and self.entity_id is not None:
            if v.parent_id == self.entity_id:
                errors["parent_id"] = "A category cannot be its own parent"
            elif v.parent_id in descendant_ids(flatten_categories(self.tree), self.entity_id):
                errors["parent_id"] = "A category cannot be moved under its own subcategory"
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        v = self.values
        return {
            "name": v.name.strip(),
            "slug": v.slug,
            "description": v.description or None,
            "parentId": v.parent_id or None,
            "displayOrder": v.display_order,
            "allowComments": v.allow_comments,
            "hideAds": v.hide_ads,
            "isActive": v.is_active if action != "save_draft" else False,
            "metaTitle": v.meta_title or None,
            "metaDescription": v.meta_description or None,
        }

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        api = ContentApi(self.client)
        if self.is_edit:
            return await api.update_category(self.entity_id, payload)
        return await api.create_category(payload)
