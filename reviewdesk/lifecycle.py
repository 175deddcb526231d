"""
Entity lifecycles: named statuses, the admin route each status links to,
and the events allowed from each status.

A status of ``None`` stands for a record that has not been created yet.
"""
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from .schemas import COMMENT_STATUSES, MERCHANT_STATUSES, POST_STATUSES, REVIEW_STATUSES, USER_STATUSES

NEW = None


class InvalidTransition(Exception):
    def __init__(self, entity: str, status: Optional[str], event: str):
        self.entity = entity
        self.status = status
        self.event = event
        super().__init__(f"Cannot {event} {entity} in status {status or 'new'}")


class EntityLifecycle(BaseModel):
    entity: str
    statuses: List[str]
    # row link per status, "{id}" is replaced by the record id
    route: str
    routes: Dict[str, str] = {}
    labels: Dict[str, str] = {}
    transitions: Dict[Tuple[Optional[str], str], str] = {}

    def route_for(self, status: Optional[str], item_id: str) -> str:
        return self.routes.get(status, self.route).replace("{id}", str(item_id))

    def label(self, status: Optional[str]) -> str:
        if status is None:
            return "New"
        return self.labels.get(status, status.replace("_", " ").title())

    def can(self, status: Optional[str], event: str) -> bool:
        return (status, event) in self.transitions

    def events(self, status: Optional[str]) -> List[str]:
        return [event for (source, event) in self.transitions if source == status]

    def next_status(self, status: Optional[str], event: str) -> str:
        try:
            return self.transitions[(status, event)]
        except KeyError:
            raise InvalidTransition(self.entity, status, event)


def _table(sources, event: str, target: str) -> Dict[Tuple[Optional[str], str], str]:
    return {(source, event): target for source in sources}


PUBLISHED_MERCHANT = [s for s in MERCHANT_STATUSES if s not in ("draft", "pending", "suspended", "rejected")]

merchant_lifecycle = EntityLifecycle(
    entity="merchant",
    statuses=MERCHANT_STATUSES,
    route="/admin/merchants/{id}",
    routes={"draft": "/admin/merchants/{id}/edit", "pending": "/admin/merchants/{id}/edit"},
    labels={"pending": "Pending Review"},
    transitions={
        **_table([NEW] + MERCHANT_STATUSES, "save_draft", "draft"),
        **_table([NEW] + MERCHANT_STATUSES, "publish", "recommended"),
        **_table(["pending"], "approve", "approved"),
        **_table(["pending"], "reject", "rejected"),
        **_table(PUBLISHED_MERCHANT, "deactivate", "suspended"),
        **_table(["suspended", "rejected"], "reactivate", "pending"),
    },
)

post_lifecycle = EntityLifecycle(
    entity="post",
    statuses=POST_STATUSES,
    route="/admin/posts/{id}",
    transitions={
        **_table([NEW, "draft", "scheduled", "published"], "save_draft", "draft"),
        **_table([NEW, "draft", "scheduled", "published"], "publish", "published"),
        **_table([NEW, "draft", "scheduled", "published"], "schedule", "scheduled"),
        **_table(["draft", "scheduled", "published"], "trash", "trash"),
        **_table(["trash"], "restore", "draft"),
    },
)

category_lifecycle = EntityLifecycle(
    entity="category",
    statuses=["active", "inactive"],
    route="/admin/posts/categories/{id}",
    transitions={
        **_table([NEW, "inactive"], "activate", "active"),
        **_table([NEW, "active"], "deactivate", "inactive"),
    },
)

user_lifecycle = EntityLifecycle(
    entity="user",
    statuses=USER_STATUSES,
    route="/admin/users/{id}",
    routes={"suspended": "/admin/users/suspended/{id}"},
    transitions={
        **_table([NEW], "create", "active"),
        # updating an active suspension re-enters the same status
        **_table(["active", "inactive", "suspended"], "suspend", "suspended"),
        **_table(["suspended"], "unsuspend", "active"),
        **_table(["inactive"], "activate", "active"),
        **_table(["active"], "deactivate", "inactive"),
    },
)

promotion_lifecycle = EntityLifecycle(
    entity="promotion",
    statuses=["active", "inactive"],
    route="/admin/promotions/{id}/edit",
    transitions={
        **_table([NEW, "inactive"], "activate", "active"),
        **_table(["active"], "deactivate", "inactive"),
    },
)

review_lifecycle = EntityLifecycle(
    entity="review",
    statuses=REVIEW_STATUSES,
    route="/admin/reviews/{id}",
    labels={"pending": "Pending Review"},
    transitions={
        **_table(REVIEW_STATUSES, "publish", "published"),
        **_table(["published", "pending"], "spam", "spam"),
        **_table(["published", "pending", "spam"], "trash", "trash"),
    },
)

comment_lifecycle = EntityLifecycle(
    entity="comment",
    statuses=COMMENT_STATUSES,
    route="/admin/comments/{id}",
    transitions={
        **_table(COMMENT_STATUSES, "publish", "published"),
        **_table(["published", "pending"], "hide", "hidden"),
        **_table(["published", "hidden"], "unpublish", "pending"),
    },
)

LIFECYCLES = {
    "merchants": merchant_lifecycle,
    "posts": post_lifecycle,
    "categories": category_lifecycle,
    "users": user_lifecycle,
    "promotions": promotion_lifecycle,
    "reviews": review_lifecycle,
    "comments": comment_lifecycle,
}
