"""
KakaoTalk business message (Alimtalk) notifier.

Sends pre-registered template messages to guests. Delivery is best effort:
send() reports failure through its return value and never raises.
"""

from typing import Any, Optional, Protocol

import requests
import structlog

from sync_reservations.config import (
    ALIMTALK_API_KEY,
    ALIMTALK_API_URL,
    ALIMTALK_SENDER_KEY,
    NOTIFIER_TIMEOUT_SECONDS,
)

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    """Delivers one templated message to a phone number."""

    def send(self, phone_number: str, template_code: str, text: str) -> bool: ...


class AlimtalkNotifier:
    """
    Notifier backed by an Alimtalk HTTP gateway.

    Attributes:
        api_url: Gateway endpoint accepting JSON message requests
        api_key: Bearer token for the gateway
        sender_key: Registered KakaoTalk channel sender key
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        api_url: str = ALIMTALK_API_URL,
        api_key: Optional[str] = ALIMTALK_API_KEY,
        sender_key: Optional[str] = ALIMTALK_SENDER_KEY,
        timeout: float = NOTIFIER_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender_key = sender_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, phone_number: str, template_code: str, text: str) -> bool:
        """
        Send a template message.

        Args:
            phone_number: Digits-only recipient phone number
            template_code: Template code registered with the gateway
            text: Rendered message body

        Returns:
            bool: True if the gateway accepted the message, False otherwise
        """
        if not self.api_key or not self.sender_key:
            logger.warning("alimtalk_not_configured", template_code=template_code)
            return False

        payload = {
            "senderKey": self.sender_key,
            "templateCode": template_code,
            "phoneNumber": phone_number,
            "message": text,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(
                self.api_url, json=payload, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            result: dict[str, Any] = response.json()
        except requests.RequestException as e:
            logger.error(
                "alimtalk_request_failed",
                template_code=template_code,
                error=str(e),
            )
            return False
        except ValueError:
            logger.error("alimtalk_invalid_response", template_code=template_code)
            return False

        if result.get("status") != "success":
            logger.warning(
                "alimtalk_rejected",
                template_code=template_code,
                reason=result.get("reason"),
            )
            return False

        logger.info("alimtalk_sent", template_code=template_code)
        return True
