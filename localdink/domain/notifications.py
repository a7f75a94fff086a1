"""
Notification templates and per-user notification preferences.

A Notification is rendered once per batch. The literal token "{first_name}"
in any of its texts is replaced per recipient by the dispatcher.
"""

from dataclasses import dataclass, field, replace
from typing import Literal

NotificationType = Literal[
    "GAME_INVITE",
    "GAME_INVITE_ACCEPTED",
    "GAME_INVITE_DECLINED",
    "GAME_FULL",
    "GAME_FILLED",
    "PLAYER_CANCELLED",
    "SPOT_AVAILABLE",
    "GAME_REMINDER",
    "GAME_CHANGED",
    "GAME_CANCELLED",
    "RSVP_EXPIRED",
]

FIRST_NAME_TOKEN = "{first_name}"
DEFAULT_APP_URL = "https://localdink.app"

# Which preference switch gates each notification type
TYPE_PREFERENCE_KEYS: dict[str, str] = {
    "GAME_INVITE": "gameInvites",
    "GAME_INVITE_ACCEPTED": "rsvpUpdates",
    "GAME_INVITE_DECLINED": "rsvpUpdates",
    "GAME_FULL": "rsvpUpdates",
    "GAME_FILLED": "rsvpUpdates",
    "PLAYER_CANCELLED": "rsvpUpdates",
    "SPOT_AVAILABLE": "spotAvailable",
    "GAME_REMINDER": "gameReminders",
    "GAME_CHANGED": "gameChanges",
    "GAME_CANCELLED": "gameChanges",
    "RSVP_EXPIRED": "gameInvites",
}

_TYPE_KEYS = ("gameInvites", "rsvpUpdates", "gameReminders", "gameChanges", "spotAvailable")
_CHANNEL_KEYS = ("inApp", "sms")


@dataclass
class NotificationPreferences:
    """Per-user switches. Anything not stored on the profile defaults to on."""
    types: dict[str, bool] = field(default_factory=lambda: {k: True for k in _TYPE_KEYS})
    channels: dict[str, bool] = field(default_factory=lambda: {k: True for k in _CHANNEL_KEYS})

    def allows(self, notification_type: str) -> bool:
        key = TYPE_PREFERENCE_KEYS.get(notification_type)
        return key is None or self.types.get(key, True)

    def channel_enabled(self, channel: str) -> bool:
        return self.channels.get(channel, True)

    @classmethod
    def from_record(cls, data: dict | None) -> "NotificationPreferences":
        prefs = cls()
        if not data:
            return prefs
        for key, value in (data.get("types") or {}).items():
            prefs.types[key] = bool(value)
        for key, value in (data.get("channels") or {}).items():
            prefs.channels[key] = bool(value)
        return prefs


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    title: str
    body: str
    sms_body: str | None = None
    session_id: str | None = None
    data: dict = field(default_factory=dict)

    def personalize(self, first_name: str) -> "Notification":
        name = first_name or "there"
        return replace(
            self,
            title=self.title.replace(FIRST_NAME_TOKEN, name),
            body=self.body.replace(FIRST_NAME_TOKEN, name),
            sms_body=self.sms_body.replace(FIRST_NAME_TOKEN, name) if self.sms_body else None,
        )


def session_link(session_id: str | None, app_url: str = DEFAULT_APP_URL) -> str:
    base = app_url.rstrip("/")
    if session_id:
        return f"{base}/dashboard/sessions/{session_id}"
    return f"{base}/dashboard/sessions"


def render(
    notification_type: NotificationType,
    session_id: str | None = None,
    *,
    inviter_name: str = "",
    player_name: str = "",
    match_type: str = "",
    when: str = "",
    court_name: str = "",
    players: str = "",
    web_link: str = "",
    sms_body: str | None = None,
) -> Notification:
    """
    Build the notification for one event.

    `sms_body` overrides the template's SMS text, e.g. for the
    personalized invite written by the session service.
    """
    who = player_name or "A player"
    game = match_type or "pickleball"
    at = when or "upcoming"
    court = court_name or "the courts"
    link = web_link or "the app"

    if notification_type == "GAME_INVITE":
        title = f"Game invite from {inviter_name or 'a friend'}"
        body = f"{game.capitalize()} on {at} • {court}"
        text = (
            f"🏓 {inviter_name or 'Someone'} invited you to play {game} on {at} "
            f"at {court}. Reply YES to join or NO to decline. {link}"
        )
    elif notification_type == "GAME_INVITE_ACCEPTED":
        title = f"{who} is in!"
        body = f"Accepted your {game} invite for {at}"
        text = f"✅ {who} confirmed for your pickleball game on {at}!"
    elif notification_type == "GAME_INVITE_DECLINED":
        title = f"{who} can't make it"
        body = f"Declined your {game} invite for {at}"
        text = f"{who} can't make your pickleball game on {at}."
    elif notification_type == "GAME_FULL":
        title = "Game on! 🎉"
        body = f"Your {game} game on {at} at {court} is confirmed"
        text = (
            "🎉 Game on! Your pickleball game is confirmed.\n"
            f"📍 {court_name or 'Court'}\n"
            f"📅 {when or 'Check the app for time'}\n"
            f"👥 Players: {players}\n\n"
            "Reply CANCEL if you can no longer make it."
        )
    elif notification_type == "GAME_FILLED":
        title = "Game is full"
        body = f"The {game} game on {at} filled up"
        text = f"The pickleball game on {at} is now full. We'll let you know if a spot opens!"
    elif notification_type == "PLAYER_CANCELLED":
        title = f"{who} dropped out"
        body = f"{who} cancelled for the game on {at}. Spot reopened!"
        text = f"⚠️ {who} cancelled for the pickleball game on {at}. Spot reopened!"
    elif notification_type == "SPOT_AVAILABLE":
        title = "A spot opened up"
        body = f"A spot opened up for {game} on {at} at {court}"
        text = f"🏓 A spot just opened up! Pickleball on {at}. Reply YES to claim it!"
    elif notification_type == "GAME_REMINDER":
        title = "Game starting soon!"
        body = f"{game.capitalize()} in 2 hours at {court}. Still need your RSVP!"
        text = f"⏰ Reminder: {game} at {court} starts in 2 hours! Reply YES to join or NO to decline. {link}"
    elif notification_type == "GAME_CHANGED":
        title = "Game details changed"
        body = f"Your {game} game on {at} has been updated"
        text = f"📝 Game update: your {game} game is now {at} at {court}. Details: {link}"
    elif notification_type == "GAME_CANCELLED":
        title = "Game cancelled"
        body = f"The {game} game on {at} at {court} has been cancelled"
        text = f"❌ Cancelled: the {game} game on {at} at {court} has been cancelled."
    elif notification_type == "RSVP_EXPIRED":
        title = "Invite expired"
        body = f"The invite to {game} on {at} has expired"
        text = None
    else:
        raise ValueError(f"Unknown notification type: {notification_type!r}")

    return Notification(
        type=notification_type,
        title=title,
        body=body,
        sms_body=sms_body if sms_body is not None else text,
        session_id=session_id,
        data={"gameSessionId": session_id} if session_id else {},
    )
