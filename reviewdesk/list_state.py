"""
Per-page list state and its pure transitions.

``ListState`` is immutable; each transition returns a new state. Filter
and search transitions send the page back to 1, ``set_page`` does not.
Any change to the fetch parameters drops the selection since the
selected rows are no longer the rows on screen.
"""
from typing import Any, Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ListState(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    status: Optional[str] = None
    search: str = ""
    category_id: Optional[str] = None
    type: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    merchant: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    reaction: Optional[str] = None
    selected: FrozenSet[str] = frozenset()
    visible_ids: Tuple[str, ...] = ()
    total: int = 0
    pages: int = 0


class Action(BaseModel):
    """A transition request, as posted to the dispatch endpoint."""
    type: str
    value: Any = None


FETCH_FIELDS = (
    "page", "limit", "status", "search", "category_id", "type", "date_from", "date_to", "merchant", "rating",
    "reaction",
)


def fetch_key(state: ListState) -> Tuple:
    return tuple(getattr(state, name) for name in FETCH_FIELDS)


def fetch_params(state: ListState, search_param: str = "search") -> Dict[str, Any]:
    return {
        "page": state.page,
        "limit": state.limit,
        "status": state.status if state.status and state.status != "all" else None,
        search_param: state.search.strip() or None,
        "categoryId": state.category_id,
        "type": state.type if state.type and state.type != "all" else None,
        "dateFrom": state.date_from,
        "dateTo": state.date_to,
        "merchant": state.merchant,
        "rating": state.rating,
        "reaction": state.reaction,
    }


def _apply(state: ListState, **changes) -> ListState:
    new = state.model_copy(update=changes)
    if fetch_key(new) != fetch_key(state):
        new = new.model_copy(update={"selected": frozenset()})
    return new


# ---------------------- Transitions ----------------------
def set_page(state: ListState, page: int) -> ListState:
    page = max(1, int(page))
    if state.pages:
        page = min(page, state.pages)
    return _apply(state, page=page)


def set_status(state: ListState, status: Optional[str]) -> ListState:
    return _apply(state, status=status or None, page=1)


def set_search(state: ListState, search: Optional[str]) -> ListState:
    return _apply(state, search=search or "", page=1)


def set_category(state: ListState, category_id: Optional[str]) -> ListState:
    return _apply(state, category_id=category_id or None, page=1)


def set_type(state: ListState, type_: Optional[str]) -> ListState:
    return _apply(state, type=type_ or None, page=1)


def set_date_range(state: ListState, date_from: Optional[str], date_to: Optional[str]) -> ListState:
    return _apply(state, date_from=date_from or None, date_to=date_to or None, page=1)


def set_merchant(state: ListState, merchant: Optional[str]) -> ListState:
    return _apply(state, merchant=(merchant or "").strip() or None, page=1)


def set_rating(state: ListState, rating: Optional[int]) -> ListState:
    if rating:
        rating = int(rating)
        if not 1 <= rating <= 5:
            raise ValueError("Rating must be between 1 and 5")
    return _apply(state, rating=rating or None, page=1)


def set_reaction(state: ListState, reaction: Optional[str]) -> ListState:
    return _apply(state, reaction=reaction or None, page=1)


def toggle_select(state: ListState, item_id: str) -> ListState:
    if item_id in state.selected:
        return state.model_copy(update={"selected": state.selected - {item_id}})
    return state.model_copy(update={"selected": state.selected | {item_id}})


def toggle_select_all(state: ListState) -> ListState:
    visible = frozenset(state.visible_ids)
    if visible and state.selected == visible:
        return clear_selection(state)
    return state.model_copy(update={"selected": visible})


def clear_selection(state: ListState) -> ListState:
    return state.model_copy(update={"selected": frozenset()})


def receive_page(state: ListState, ids, total: int, pages: int) -> ListState:
    ids = tuple(ids)
    # keep only selections still on screen
    return state.model_copy(update={
        "visible_ids": ids,
        "total": total,
        "pages": pages,
        "selected": state.selected & frozenset(ids),
    })


def reduce(state: ListState, action: Action) -> ListState:
    kind, value = action.type, action.value
    if kind == "set_page":
        return set_page(state, value)
    if kind == "set_status":
        return set_status(state, value)
    if kind == "set_search":
        return set_search(state, value)
    if kind == "set_category":
        return set_category(state, value)
    if kind == "set_type":
        return set_type(state, value)
    if kind == "set_date_range":
        value = value or {}
        return set_date_range(state, value.get("dateFrom"), value.get("dateTo"))
    if kind == "set_merchant":
        return set_merchant(state, value)
    if kind == "set_rating":
        return set_rating(state, value)
    if kind == "set_reaction":
        return set_reaction(state, value)
    if kind == "toggle_select":
        return toggle_select(state, str(value))
    if kind == "toggle_select_all":
        return toggle_select_all(state)
    if kind == "clear_selection":
        return clear_selection(state)
    raise ValueError(f"Unknown action: {kind}")
