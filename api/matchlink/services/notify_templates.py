"""
In-app notification copy.

One title/message pair per notification type. Messages are formatted with the
display name of the member who triggered the event; unknown names fall back to
"Someone".
"""

from typing import Any

from .domain import NotificationType

NOTIFICATION_COPY: dict[NotificationType, dict[str, str]] = {
    NotificationType.REQUEST_SENT: {
        "title": "Request sent",
        "message": "Your connection request to {subject} has been sent.",
    },
    NotificationType.REQUEST_RECEIVED: {
        "title": "New connection request",
        "message": "{actor} has sent you a connection request.",
    },
    NotificationType.REQUEST_ACCEPTED: {
        "title": "Request accepted",
        "message": "{actor} has accepted your connection request.",
    },
    NotificationType.REQUEST_REJECTED: {
        "title": "Request declined",
        "message": "{actor} has declined your connection request.",
    },
    NotificationType.REQUEST_CANCELLED: {
        "title": "Connection cancelled",
        "message": "Your connection with {counterpart} has been cancelled.",
    },
    NotificationType.LIKE: {
        "title": "Someone likes you",
        "message": "{actor} has added you to their shortlist.",
    },
    NotificationType.PROFILE_VIEW: {
        "title": "Profile view",
        "message": "{actor} viewed your profile.",
    },
    NotificationType.SYSTEM: {
        "title": "Notice",
        "message": "{text}",
    },
}

FALLBACK_NAME = "Someone"


class _Names(dict):
    def __missing__(self, key: str) -> str:
        return FALLBACK_NAME


def render_notification(notification_type: NotificationType, names: dict[str, Any]) -> tuple[str, str]:
    copy = NOTIFICATION_COPY[NotificationType(notification_type)]
    values = _Names({k: v for k, v in names.items() if v})
    return copy["title"], copy["message"].format_map(values)
