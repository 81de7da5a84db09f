"""
Client-side notification list.

Merges the paginated history fetched over REST with the live push stream.
The list is never mutated in place: every change builds a new tuple, so a
snapshot handed to a view stays valid after later events arrive.

Follow requests are keyed by sender. A newer request from the same sender
replaces the older entry, a ``notificationRemoved`` signal drops every entry
for that (type, sender), and each fetch re-applies both rules because pushes
and fetch completions can arrive in either order.
"""
import datetime
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field
from app.schemas import notification as notification_schemas
from app.schemas.user import PublicUser

logger = logging.getLogger(__name__)

FOLLOW_REQUEST = "follow_request"

Listener = Callable[[Tuple["ClientNotification", ...]], None]


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)

def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"

def humanize_since(created_at: datetime.datetime, now: Optional[datetime.datetime] = None) -> str:
    now = _as_utc(now or datetime.datetime.now(datetime.timezone.utc))
    seconds = max((now - _as_utc(created_at)).total_seconds(), 0)

    if seconds < 45:
        return "less than a minute ago"
    minutes = round(seconds / 60)
    if minutes < 45:
        return f"{_plural(minutes, 'minute')} ago"
    hours = round(minutes / 60)
    if hours < 24:
        return f"about {_plural(hours, 'hour')} ago"
    days = round(hours / 24)
    if days < 30:
        return f"{_plural(days, 'day')} ago"
    months = round(days / 30)
    if months < 12:
        return f"{_plural(months, 'month')} ago"
    return f"about {_plural(round(months / 12), 'year')} ago"


class ClientNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: notification_schemas.NotificationType
    message: str
    sender: Optional[PublicUser] = None
    subject: notification_schemas.Subject = Field(default_factory=notification_schemas.NoSubject)
    comment: Optional[str] = None
    is_read: bool = False
    created_at: datetime.datetime
    timestamp: str = ""

    # Interim UI state until the next fetch
    is_followed_back: bool = False
    is_accepted: bool = False
    is_rejected: bool = False

    @property
    def sender_id(self) -> Optional[str]:
        return self.sender.id if self.sender else None

    @classmethod
    def from_wire(cls, notification: notification_schemas.Notification, now: Optional[datetime.datetime] = None) -> "ClientNotification":
        created_at = _as_utc(notification.created_at)
        return cls(
            id=notification.id,
            type=notification.type,
            message=notification.message,
            sender=notification.sender,
            subject=notification.subject,
            comment=notification.comment,
            is_read=notification.is_read,
            created_at=created_at,
            timestamp=humanize_since(created_at, now),
        )


def collapse_follow_requests(entries: Iterable[ClientNotification]) -> Tuple[ClientNotification, ...]:
    """Keeps the first (newest) follow_request per sender; other types pass through."""
    seen = set()
    kept = []
    for entry in entries:
        if entry.type == FOLLOW_REQUEST:
            if entry.sender_id in seen:
                continue
            seen.add(entry.sender_id)
        kept.append(entry)
    return tuple(kept)

def _newest_first(entries: Iterable[ClientNotification]) -> List[ClientNotification]:
    return sorted(entries, key=lambda e: e.created_at, reverse=True)


Payload = Union[dict, notification_schemas.Notification]

# Matches the server's retention window; older tombstones can no longer match anything
TOMBSTONE_TTL = datetime.timedelta(days=90)


class ReconciliationCache:
    def __init__(self, clock: Optional[Callable[[], datetime.datetime]] = None):
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))
        self._entries: Tuple[ClientNotification, ...] = ()
        # Pushed since the last fetch completed; carried into a fetch whose snapshot predates them
        self._pushed: Tuple[ClientNotification, ...] = ()
        # id -> when it was removed; a stale fetch must not bring it back
        self._removed_ids: Dict[str, datetime.datetime] = {}
        # (type, sender_id) -> when the removal signal arrived
        self._removals: Dict[Tuple[str, Optional[str]], datetime.datetime] = {}
        self._listeners: List[Listener] = []
        self.unread_count = 0

    def snapshot(self) -> Tuple[ClientNotification, ...]:
        return self._entries

    def __len__(self):
        return len(self._entries)

    def find(self, notification_id: str) -> Optional[ClientNotification]:
        for entry in self._entries:
            if entry.id == notification_id:
                return entry
        return None

    def matching(self, type: str, sender_id: str) -> Tuple[ClientNotification, ...]:
        return tuple(e for e in self._entries if e.type == type and e.sender_id == sender_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a change listener. Call the returned function to deregister it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _commit(self, entries: Iterable[ClientNotification]) -> None:
        self._entries = tuple(entries)
        for listener in list(self._listeners):
            listener(self._entries)

    def _to_entry(self, payload: Payload) -> ClientNotification:
        if not isinstance(payload, notification_schemas.Notification):
            payload = notification_schemas.Notification.model_validate(payload)
        return ClientNotification.from_wire(payload, self._clock())

    def _is_removed(self, entry: ClientNotification) -> bool:
        if entry.id in self._removed_ids:
            return True
        removed_at = self._removals.get((entry.type, entry.sender_id))
        return removed_at is not None and entry.created_at <= removed_at

    def _prune_tombstones(self) -> None:
        cutoff = self._clock() - TOMBSTONE_TTL
        self._removed_ids = {k: at for k, at in self._removed_ids.items() if at >= cutoff}
        self._removals = {k: at for k, at in self._removals.items() if at >= cutoff}

    def replace_from_fetch(self, notifications: Iterable[Payload]) -> None:
        self._prune_tombstones()
        fetched = [e for e in (self._to_entry(n) for n in notifications) if not self._is_removed(e)]
        fetched_ids = {e.id for e in fetched}
        carried = [e for e in self._pushed if e.id not in fetched_ids]
        if carried:
            logger.debug(f"Carrying {len(carried)} pushed notifications over a stale fetch")

        self._pushed = ()
        self._commit(collapse_follow_requests(_newest_first(fetched + carried)))

    def merge_page(self, notifications: Iterable[Payload]) -> int:
        """
        Adds an older page (load more) to the list. Removals and the
        follow_request collapse apply as for a fetch; the push log is kept.
        """
        fetched = [e for e in (self._to_entry(n) for n in notifications) if not self._is_removed(e)]
        known = {e.id for e in self._entries}
        added = [e for e in fetched if e.id not in known]
        if added:
            self._commit(collapse_follow_requests(_newest_first(list(self._entries) + added)))
        return len(added)

    def apply_push(self, payload: Payload) -> Optional[ClientNotification]:
        entry = self._to_entry(payload)
        if entry.id in self._removed_ids:
            return None

        key = (entry.type, entry.sender_id)
        if key in self._removals and entry.created_at <= self._removals[key]:
            # Pushed after the removal arrived, so it is newer; lower the marker below it
            self._removals = {**self._removals, key: entry.created_at - datetime.timedelta(microseconds=1)}

        self._pushed = tuple(e for e in self._pushed if e.id != entry.id) + (entry,)
        others = [e for e in self._entries if e.id != entry.id]

        if entry.type == FOLLOW_REQUEST:
            same_sender = [e for e in others if e.type == FOLLOW_REQUEST and e.sender_id == entry.sender_id]
            if any(e.created_at > entry.created_at for e in same_sender):
                # Out-of-order delivery; the cached request is already newer
                return None
            others = [e for e in others if e not in same_sender]
            self._commit(_newest_first([entry] + others))
        else:
            self._commit([entry] + others)
        return entry

    def apply_removed(self, payload: Union[dict, notification_schemas.NotificationRemoved]) -> int:
        """
        Drops every entry for (type, sender) and remembers the removal, so a
        fetch that was already in flight cannot bring those entries back.
        """
        if not isinstance(payload, notification_schemas.NotificationRemoved):
            payload = notification_schemas.NotificationRemoved.model_validate(payload)

        def matches(e):
            return e.type == payload.type and e.sender_id == payload.sender_id

        now = self._clock()
        removed = [e for e in self._entries if matches(e)]
        tombstones = {e.id: now for e in removed + [e for e in self._pushed if matches(e)]}
        self._removed_ids = {**self._removed_ids, **tombstones}
        self._removals = {**self._removals, (payload.type, payload.sender_id): now}
        self._pushed = tuple(e for e in self._pushed if not matches(e))
        if removed:
            self._commit(e for e in self._entries if not matches(e))
        return len(removed)

    def apply_unread_count(self, payload: Union[dict, int]) -> None:
        self.unread_count = payload["count"] if isinstance(payload, dict) else int(payload)

    def remove(self, notification_id: str) -> bool:
        if self.find(notification_id) is None:
            return False
        self._removed_ids = {**self._removed_ids, notification_id: self._clock()}
        self._pushed = tuple(e for e in self._pushed if e.id != notification_id)
        self._commit(e for e in self._entries if e.id != notification_id)
        return True

    def update(self, notification_id: str, **changes) -> Optional[ClientNotification]:
        updated = None
        entries = []
        for entry in self._entries:
            if entry.id == notification_id:
                entry = updated = entry.model_copy(update=changes)
            entries.append(entry)
        if updated is not None:
            self._commit(entries)
        return updated

    def mark_read(self, notification_id: str) -> Optional[ClientNotification]:
        return self.update(notification_id, is_read=True)

    def mark_all_read(self) -> None:
        self._commit(e if e.is_read else e.model_copy(update={"is_read": True}) for e in self._entries)

    def set_flags(self, notification_id: str, is_followed_back: Optional[bool] = None, is_accepted: Optional[bool] = None, is_rejected: Optional[bool] = None):
        changes = {k: v for k, v in (
            ("is_followed_back", is_followed_back),
            ("is_accepted", is_accepted),
            ("is_rejected", is_rejected),
        ) if v is not None}
        return self.update(notification_id, **changes)
