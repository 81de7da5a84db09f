import datetime
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Tuple, Union
from app.schemas import notification as notification_schemas

logger = logging.getLogger(__name__)

DISMISS_AFTER_SECONDS = 5
MAX_TOASTS = 5
NOTIFICATIONS_PATH = "/notifications"
BADGE_ICON = "/icons/app-badge.svg"

CHANNEL_IN_APP = "in_app"
CHANNEL_SYSTEM = "system"

TITLES = {
    "like": "New Like",
    "comment": "New Comment",
    "follow": "New Follower",
    "follow_request": "Follow Request",
    "follow_accept": "Follow Request Accepted",
    "mention": "You were mentioned",
}

ICONS = {
    "like": "/icons/heart-notification.svg",
    "comment": "/icons/comment-notification.svg",
    "follow": "/icons/follow-notification.svg",
    "follow_request": "/icons/follow-notification.svg",
}
DEFAULT_ICON = "/icons/default-notification.svg"

POST_IMAGE_TYPES = ("like", "comment")


def title_for(type: str) -> str:
    return TITLES.get(type, "New Notification")

def icon_for(type: str) -> str:
    return ICONS.get(type, DEFAULT_ICON)


class Preferences:
    """User delivery preferences persisted as JSON. Sound is on unless turned off."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}

    @property
    def sound_enabled(self) -> bool:
        return self._load().get("notification_sound", True) is not False

    def set_sound_enabled(self, enabled: bool) -> None:
        data = self._load()
        data["notification_sound"] = bool(enabled)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data))


@dataclass(frozen=True)
class Toast:
    type: str
    message: str
    username: Optional[str] = None
    avatar: Optional[str] = None
    post_image: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))


class InAppOverlay:
    """Transient toasts, newest first, capped at MAX_TOASTS."""

    def __init__(self, max_toasts: int = MAX_TOASTS, dismiss_after: float = DISMISS_AFTER_SECONDS):
        self.max_toasts = max_toasts
        self.dismiss_after = dismiss_after
        self._toasts: Tuple[Toast, ...] = ()

    @property
    def toasts(self) -> Tuple[Toast, ...]:
        return self._toasts

    def add(self, toast: Toast) -> Toast:
        self._toasts = (toast,) + self._toasts[:self.max_toasts - 1]
        return toast

    def dismiss(self, toast_id: str) -> None:
        self._toasts = tuple(t for t in self._toasts if t.id != toast_id)

    def clear(self) -> None:
        self._toasts = ()

    def expire(self, now: Optional[datetime.datetime] = None) -> int:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        cutoff = now - datetime.timedelta(seconds=self.dismiss_after)
        kept = tuple(t for t in self._toasts if t.created_at > cutoff)
        expired = len(self._toasts) - len(kept)
        self._toasts = kept
        return expired


@dataclass(frozen=True)
class SystemNotification:
    title: str
    body: str
    icon: str
    tag: str
    badge: str = BADGE_ICON
    image: Optional[str] = None
    click_url: str = NOTIFICATIONS_PATH
    dismiss_after: float = DISMISS_AFTER_SECONDS
    silent: bool = True # sound is played by the policy, not the OS

    def click(self, focus: Callable[[], None], navigate: Callable[[str], None], close: Callable[[], None], current_path: Optional[str] = None) -> None:
        focus()
        if current_path != self.click_url:
            navigate(self.click_url)
        close()


@dataclass(frozen=True)
class DeliveryDecision:
    channel: str
    played_sound: bool
    toast: Optional[Toast] = None
    system_notification: Optional[SystemNotification] = None


def _sender_tag(payload: notification_schemas.Notification) -> str:
    if payload.sender is None:
        return "unknown"
    return payload.sender.username or payload.sender.id


class DeliveryPolicy:
    """
    Picks how a live notification is presented:

    1. play the sound if the user has it enabled, whatever the channel;
    2. in-app toast when system notifications are not permitted or the
       window has focus;
    3. otherwise a system notification tagged by (type, sender) so the OS
       collapses repeats from the same sender.
    """

    def __init__(
        self,
        preferences: Preferences,
        permission: Callable[[], str],
        is_focused: Callable[[], bool],
        overlay: Optional[InAppOverlay] = None,
        play_sound: Optional[Callable[[], None]] = None,
        show_system: Optional[Callable[[SystemNotification], None]] = None,
        resolve_post_image: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.preferences = preferences
        self.permission = permission
        self.is_focused = is_focused
        self.overlay = overlay or InAppOverlay()
        self.play_sound = play_sound
        self.show_system = show_system
        self.resolve_post_image = resolve_post_image

    def _sound(self) -> bool:
        if not self.preferences.sound_enabled or self.play_sound is None:
            return False
        try:
            self.play_sound()
            return True
        except Exception as e:
            logger.warning(f"Error playing notification sound: {e}")
            return False

    def _post_image(self, payload: notification_schemas.Notification) -> Optional[str]:
        if payload.type not in POST_IMAGE_TYPES or payload.subject.kind != "post" or self.resolve_post_image is None:
            return None
        try:
            return self.resolve_post_image(payload.subject.ref)
        except Exception as e:
            logger.warning(f"Could not resolve image for post {payload.subject.ref}: {e}")
            return None

    def _toast(self, payload: notification_schemas.Notification, post_image: Optional[str] = None) -> Toast:
        sender = payload.sender
        return self.overlay.add(Toast(
            type=payload.type,
            message=payload.message,
            username=sender.username if sender else None,
            avatar=sender.profile_photo_url if sender else None,
            post_image=post_image,
        ))

    def build_system_notification(self, payload: notification_schemas.Notification, post_image: Optional[str] = None) -> SystemNotification:
        avatar = payload.sender.profile_photo_url if payload.sender else None
        return SystemNotification(
            title=title_for(payload.type),
            body=payload.message,
            icon=avatar or icon_for(payload.type),
            tag=f"{payload.type}-{_sender_tag(payload)}",
            image=post_image if payload.type in POST_IMAGE_TYPES else None,
        )

    def deliver(self, payload: Union[dict, notification_schemas.Notification], post_image: Optional[str] = None) -> DeliveryDecision:
        if not isinstance(payload, notification_schemas.Notification):
            payload = notification_schemas.Notification.model_validate(payload)
        if post_image is None:
            post_image = self._post_image(payload)

        played = self._sound()

        if self.permission() != "granted" or self.is_focused() or self.show_system is None:
            return DeliveryDecision(CHANNEL_IN_APP, played, toast=self._toast(payload, post_image))

        system_notification = self.build_system_notification(payload, post_image)
        try:
            self.show_system(system_notification)
        except Exception as e:
            logger.error(f"Failed to show system notification, falling back to in-app: {e}")
            return DeliveryDecision(CHANNEL_IN_APP, played, toast=self._toast(payload, post_image))
        return DeliveryDecision(CHANNEL_SYSTEM, played, system_notification=system_notification)
