"""
Firebase Cloud Messaging push sender.

Wraps the FCM HTTP v1 `messages:send` endpoint. The sender is built once at
process start and passed to the notification dispatcher; when Firebase
credentials are not configured it stays disabled and every send is a no-op.

OAuth2 access tokens come from a service-account credential. Refreshing it is
a blocking call, so it runs in a worker thread.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class PushSender:
    """
    Push delivery capability.

    Example usage:
        sender = PushSender.from_settings(settings)
        message_id = await sender.send(token, "Title", "Body", {"type": "INFO"})
        await sender.close()
    """

    def __init__(
        self,
        project_id: str = "",
        client_email: str = "",
        private_key: str = "",
        timeout: float = 10.0,
    ):
        """
        Initialize push sender.

        Args:
            project_id: Firebase project ID
            client_email: Service-account client email
            private_key: Service-account PEM private key (literal "\\n" allowed)
            timeout: HTTP timeout for each send, in seconds
        """
        self.project_id = project_id
        self._credentials = None
        self._client: Optional[httpx.AsyncClient] = None

        if project_id and client_email and private_key:
            try:
                self._credentials = service_account.Credentials.from_service_account_info(
                    {
                        "project_id": project_id,
                        "client_email": client_email,
                        "private_key": private_key.replace("\\n", "\n"),
                        "token_uri": TOKEN_URI,
                    },
                    scopes=[FCM_SCOPE],
                )
                self._client = httpx.AsyncClient(timeout=timeout)
                logger.info(f"Push sender initialized for Firebase project {project_id}")
            except ValueError as e:
                logger.warning(f"Failed to initialize Firebase credentials, push disabled: {e}")
                self._credentials = None
        else:
            logger.warning("Firebase credentials not configured - push delivery disabled")

    @classmethod
    def from_settings(cls, settings) -> "PushSender":
        return cls(
            project_id=settings.FIREBASE_PROJECT_ID,
            client_email=settings.FIREBASE_CLIENT_EMAIL,
            private_key=settings.FIREBASE_PRIVATE_KEY,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return self._credentials is not None

    async def _access_token(self) -> str:
        if not self._credentials.valid:
            await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
        return self._credentials.token

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Send a push message to one device.

        Args:
            token: Device registration token
            title: Notification title
            body: Notification body
            data: Key-value payload; values are sent as strings

        Returns:
            FCM message name, or None when push is disabled

        Raises:
            httpx.HTTPError: If the FCM request fails
        """
        if not self.enabled:
            logger.debug("Push disabled - skipping send")
            return None

        payload = {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                "data": {key: "" if value is None else str(value) for key, value in (data or {}).items()},
            }
        }
        access_token = await self._access_token()

        response = await self._client.post(
            FCM_SEND_URL.format(project_id=self.project_id),
            json=payload,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()

        message_id = response.json().get("name")
        logger.debug(f"Push sent: {message_id}")
        return message_id

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
