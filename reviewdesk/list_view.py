"""
List-view controller: holds a ``ListState``, fetches the current page
from the upstream API whenever the fetch parameters change and runs row
and bulk actions.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from .api_client import ApiClient, ApiResult
from .list_state import Action, ListState, fetch_key, fetch_params, receive_page, reduce
from .pagination import page_window, showing_range
from .resources import ListResource

logger = logging.getLogger(__name__)

PAST_TENSE = {
    "publish": "published",
    "deactivate": "deactivated",
    "activate": "activated",
    "suspend": "suspended",
    "delete": "deleted",
    "trash": "moved to trash",
    "draft": "moved to draft",
    "restore": "restored",
    "duplicate": "duplicated",
    "accept": "accepted",
    "reject": "rejected",
    "spam": "marked as spam",
    "hide": "hidden",
    "pending": "moved to pending",
    "feature": "toggled featured on",
}


class BulkFailure(BaseModel):
    id: str
    error: str


class BulkResult(BaseModel):
    action: str
    succeeded: List[str] = []
    failed: List[BulkFailure] = []
    message: str = ""

    @property
    def ok(self) -> bool:
        return not self.failed


def _values(obj: Any, path: List[str]) -> Iterable[str]:
    if isinstance(obj, list):
        for item in obj:
            yield from _values(item, path)
        return
    if not path:
        if obj is not None:
            yield str(obj)
        return
    if isinstance(obj, dict):
        yield from _values(obj.get(path[0]), path[1:])


def matches_search(row: Dict[str, Any], query: str, fields: List[str]) -> bool:
    query = (query or "").strip().lower()
    if not query:
        return True
    return any(query in value.lower() for field in fields for value in _values(row, field.split(".")))


def comment_count(row: Dict[str, Any]) -> int:
    comments = row.get("comments")
    if isinstance(comments, list):
        return len(comments)
    return int(row.get("commentCount") or row.get("commentsCount") or 0)


def sort_rows(rows: List[Dict[str, Any]], order: Optional[str]) -> List[Dict[str, Any]]:
    if order == "recent":
        return sorted(rows, key=lambda r: r.get("createdAt") or r.get("lastReportDate") or "", reverse=True)
    if order == "most-comments":
        return sorted(rows, key=comment_count, reverse=True)
    return list(rows)


def flatten_tree(items: List[Dict[str, Any]], depth: int = 0) -> List[Dict[str, Any]]:
    flat = []
    for item in items:
        children = item.get("children") or []
        flat.append({**item, "depth": depth})
        flat.extend(flatten_tree(children, depth + 1))
    return flat


class ListViewController:
    def __init__(self, resource: ListResource, client: ApiClient, state: Optional[ListState] = None):
        self.resource = resource
        self.client = client
        self.state = state or ListState()
        self.items: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self.fetch_count = 0

    # ---------------------- Fetching ----------------------
    async def load(self) -> ApiResult:
        params = fetch_params(self.state, self.resource.search_param)
        if params["status"] in self.resource.status_aliases:
            params["status"] = self.resource.status_aliases[params["status"]]
        self.fetch_count += 1
        result = await self.resource.list_call(self.client, params)
        if not result.ok:
            logger.warning("Failed to load %s: %s", self.resource.name, result.error)
            self.error = result.error
            return result

        self.error = None
        body = result.data if isinstance(result.data, dict) else {"items": result.data or []}
        raw = body.get(self.resource.items_key, body.get("items", [])) or []
        rows = [self.resource.parse(item) for item in raw]

        pagination = body.get("pagination")
        if pagination:
            total = pagination.get("total", len(rows))
            pages = pagination.get("pages", 0)
        else:
            rows, total, pages = self._page_locally(rows)

        self.items = rows
        self.state = receive_page(self.state, [self.resource.row_id(r) for r in rows], total, pages)
        return result

    def _page_locally(self, rows: List[Dict[str, Any]]):
        rows = flatten_tree(rows)
        if self.state.status and self.state.status != "all":
            rows = [r for r in rows if self.resource.status_of(r) == self.state.status]
        rows = [r for r in rows if matches_search(r, self.state.search, self.resource.search_fields)]
        total = len(rows)
        pages = (total + self.state.limit - 1) // self.state.limit
        start = (self.state.page - 1) * self.state.limit
        return rows[start:start + self.state.limit], total, pages

    async def dispatch(self, action: Action) -> bool:
        """Apply ``action``; fetch once if the fetch parameters changed."""
        before = fetch_key(self.state)
        self.state = reduce(self.state, action)
        if fetch_key(self.state) == before:
            return False
        await self.load()
        return True

    # ---------------------- Actions ----------------------
    def _row(self, item_id: str) -> Dict[str, Any]:
        for row in self.items:
            if self.resource.row_id(row) == item_id:
                return row
        return {self.resource.id_field: item_id}

    async def delete(self, item_id: str) -> ApiResult:
        if self.resource.delete_call is None:
            return ApiResult(error=f"{self.resource.name} cannot be deleted")
        result = await self.resource.delete_call(self.client, item_id, self._row(item_id))
        if result.ok:
            logger.info("Deleted %s %s", self.resource.name, item_id)
            await self.load()
        return result

    async def bulk(self, action: str, ids: Optional[List[str]] = None) -> BulkResult:
        action = self.resource.action_aliases.get(action, action)
        ids = list(ids if ids is not None else sorted(self.state.selected))
        if not ids:
            return BulkResult(action=action, message=f"Please select {self.resource.name} to perform bulk action.")

        if action in self.resource.batch_actions and self.resource.batch_call is not None:
            result = await self.resource.batch_call(self.client, action, ids)
            outcome = BulkResult(action=action)
            if result.ok:
                outcome.succeeded = ids
            else:
                outcome.failed = [BulkFailure(id=i, error=result.error) for i in ids]
        elif action in self.resource.item_actions:
            outcome = await self._fan_out(action, ids)
        else:
            return BulkResult(action=action, failed=[BulkFailure(id=i, error="Unsupported action") for i in ids],
                              message=f"Unsupported action: {action}")

        for failure in outcome.failed:
            logger.warning("%s %s %s failed: %s", action, self.resource.name, failure.id, failure.error)
        outcome.message = self._summary(outcome, len(ids))
        self.state = self.state.model_copy(update={"selected": frozenset()})
        await self.load()
        return outcome

    async def _fan_out(self, action: str, ids: List[str]) -> BulkResult:
        call = self.resource.item_actions[action]
        results = await asyncio.gather(*(call(self.client, i, self._row(i)) for i in ids))
        outcome = BulkResult(action=action)
        for item_id, result in zip(ids, results):
            if result.ok:
                outcome.succeeded.append(item_id)
            else:
                outcome.failed.append(BulkFailure(id=item_id, error=result.error))
        return outcome

    def _summary(self, outcome: BulkResult, count: int) -> str:
        verb = PAST_TENSE.get(outcome.action, outcome.action)
        name = self.resource.name
        if not outcome.failed:
            return f"Successfully {verb} {count} {name}"
        if not outcome.succeeded:
            return f"Bulk action failed: {outcome.failed[0].error}"
        return f"{len(outcome.succeeded)} of {count} {name} {verb}, {len(outcome.failed)} failed"

    # ---------------------- Views ----------------------
    def filtered_rows(self, query: str = "", order: Optional[str] = None) -> List[Dict[str, Any]]:
        """In-memory search and sort over the fetched page only."""
        rows = [r for r in self.items if matches_search(r, query, self.resource.search_fields)]
        return sort_rows(rows, order)

    def view(self, query: str = "", order: Optional[str] = None) -> Dict[str, Any]:
        rows = self.filtered_rows(query, order)
        first, last, total = showing_range(self.state.page, self.state.limit, self.state.total)
        return {
            "state": self.state.model_dump(mode="json"),
            "rows": [self.resource.row_view(r) for r in rows],
            "filteredCount": len(rows),
            "pageWindow": page_window(self.state.page, self.state.pages),
            "showing": {"from": first, "to": last, "total": total},
            "actions": self.resource.actions,
            "error": self.error,
        }
