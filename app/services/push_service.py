"""
Push notifications through Firebase Cloud Messaging.
"""

from typing import Any, Dict, List, Optional

from firebase_admin import messaging

from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TITLE = "New Message"
DEFAULT_BODY = "You have a new message!"


class PushService:
    """Sends FCM multicast messages with a web push deep link."""

    def __init__(self, link_url: str):
        self.link_url = link_url

    def send(
        self,
        tokens: List[str],
        title: Optional[str] = None,
        body: Optional[str] = None,
        link: Optional[str] = None,
        badge: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Deliver a notification to every device token.

        Returns:
            Dictionary with success_count and failure_count
        """
        if not tokens:
            return {"success_count": 0, "failure_count": 0}

        data = {"badge": str(badge)} if badge is not None else None
        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title or DEFAULT_TITLE, body=body or DEFAULT_BODY),
            data=data,
            webpush=messaging.WebpushConfig(
                fcm_options=messaging.WebpushFCMOptions(link=link or self.link_url),
            ),
        )
        response = messaging.send_each_for_multicast(message)
        if response.failure_count:
            logger.warning(f"Push delivery failed for {response.failure_count}/{len(tokens)} tokens")
        return {"success_count": response.success_count, "failure_count": response.failure_count}


class LocalPushService:
    """Records notifications instead of sending them."""

    def __init__(self, link_url: str):
        self.link_url = link_url
        self.sent: List[Dict[str, Any]] = []

    def send(
        self,
        tokens: List[str],
        title: Optional[str] = None,
        body: Optional[str] = None,
        link: Optional[str] = None,
        badge: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not tokens:
            return {"success_count": 0, "failure_count": 0}
        record = {
            "tokens": list(tokens),
            "title": title or DEFAULT_TITLE,
            "body": body or DEFAULT_BODY,
            "link": link or self.link_url,
            "badge": badge,
        }
        self.sent.append(record)
        logger.info(f"[local push] {record['title']}: {record['body']} -> {len(tokens)} device(s)")
        return {"success_count": len(tokens), "failure_count": 0}
