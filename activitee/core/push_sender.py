import logging
from typing import Iterable, List, Optional, Protocol

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from activitee.core.config import PUSH_DISPATCH_URL, PUSH_DISPATCH_TOKEN, PUSH_TIMEOUT

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(
        self,
        recipients: Iterable[int],
        title: str,
        body: Optional[str] = None,
        link: Optional[str] = None,
    ) -> bool: ...


def normalize_recipients(
    recipients: Iterable[int], actor_user_id: Optional[int] = None
) -> List[int]:
    """Unique recipient ids in first-seen order, without the acting user"""
    seen = set()
    result = []
    for user_id in recipients:
        if user_id is None or user_id == actor_user_id or user_id in seen:
            continue
        seen.add(user_id)
        result.append(user_id)
    return result


class PushSender:
    """
    Fire-and-forget client for the push dispatch endpoint.

    ``notify`` never raises: delivery problems are logged and reported as False
    so that a failed push cannot undo a committed scheduling change.
    """

    def __init__(
        self,
        dispatch_url: Optional[str] = PUSH_DISPATCH_URL,
        token: Optional[str] = PUSH_DISPATCH_TOKEN,
        timeout: float = PUSH_TIMEOUT,
    ):
        self.dispatch_url = dispatch_url
        self.token = token
        self.timeout = timeout

    async def notify(
        self,
        recipients: Iterable[int],
        title: str,
        body: Optional[str] = None,
        link: Optional[str] = None,
    ) -> bool:
        recipient_ids = normalize_recipients(recipients)
        if not recipient_ids:
            return True

        if not self.dispatch_url:
            logger.debug("PUSH_DISPATCH_URL is not set, skipping push notification")
            return False

        payload = {
            "title": title,
            "body": body,
            "url": link,
            "recipientUserIds": recipient_ids,
        }

        try:
            response = await self._post(payload)
        except Exception as e:
            logger.error(
                f"Error dispatching push notification: {str(e)}",
                extra={"recipients": len(recipient_ids), "title": title},
            )
            return False

        if response.status_code >= 400:
            logger.error(
                f"Push dispatch rejected ({response.status_code}): {response.text}",
                extra={"recipients": len(recipient_ids), "title": title},
            )
            return False

        return True

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    async def _post(self, payload: dict) -> httpx.Response:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.dispatch_url, json=payload, headers=headers)


push_sender = PushSender()


def get_push_sender() -> NotificationSink:
    return push_sender
