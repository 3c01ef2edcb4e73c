import asyncio
import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, messaging
from pinme.core.config import settings

logger = logging.getLogger(__name__)


class FCMManager:
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(FCMManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._initialize_firebase()
            FCMManager._initialized = True

    def _initialize_firebase(self):
        """Initialize Firebase Admin SDK once with ENV or JSON file"""
        # 1. Prevent duplicate initialization
        if firebase_admin._apps:
            return

        try:
            # 2. Try initializing from Environment Variable (production)
            if settings.FIREBASE_SERVICE_ACCOUNT:
                try:
                    cred_dict = json.loads(settings.FIREBASE_SERVICE_ACCOUNT)
                    firebase_admin.initialize_app(credentials.Certificate(cred_dict))
                    logger.info("✅ Firebase Admin SDK initialized from ENV")
                    return
                except Exception as e:
                    logger.warning(f"⚠️ Failed to parse FIREBASE_SERVICE_ACCOUNT JSON: {e}")
                    # Fall through to file method

            # 3. Fallback to Local JSON File (development)
            cred_path = os.path.join(
                os.path.dirname(__file__),
                "..",
                "..",
                settings.FIREBASE_CREDENTIALS
            )

            if os.path.exists(cred_path):
                firebase_admin.initialize_app(credentials.Certificate(cred_path))
                logger.info("✅ Firebase Admin SDK initialized from local file")
            else:
                logger.warning(f"⚠️ FIREBASE_SERVICE_ACCOUNT missing and file not found at {cred_path}; pushes are disabled")

        except Exception as e:
            logger.error(f"❌ CRITICAL: Failed to initialize Firebase: {e}")

    @property
    def available(self) -> bool:
        return bool(firebase_admin._apps)

    async def send_notification(self, token: str, title: str, body: str, data: dict = None):
        """
        Send a push notification to a specific device token (Async).
        Returns the message id, or None when nothing was sent.
        Raises ValueError("STALE_TOKEN") when Firebase no longer knows the token.
        """
        if not token:
            logger.warning("⚠️ No FCM token provided")
            return None
        if not self.available:
            return None

        if not title or not title.strip():
            logger.warning(f"⚠️ Notification Title missing for token {token[:10]}... Skipping.")
            return None

        try:
            # FCM data payloads only carry strings
            data_payload = {k: str(v) for k, v in (data or {}).items() if v is not None}
            data_payload['notification_title'] = title
            data_payload['notification_body'] = body or ""

            message = messaging.Message(
                notification=messaging.Notification(title=title, body=body),
                data=data_payload,
                token=token,
                android=messaging.AndroidConfig(priority='high'),
                apns=messaging.APNSConfig(headers={'apns-priority': '10'})
            )

            # Use to_thread for the synchronous blocking network call
            response = await asyncio.to_thread(messaging.send, message)
            logger.info(f"✅ Successfully sent notification: {response}")
            return response
        except messaging.UnregisteredError:
            logger.warning(f"⚠️ Token is invalid/unregistered. Cleaning up: {token[:20]}...")
            raise ValueError("STALE_TOKEN")
        except Exception as e:
            if "Requested entity was not found" in str(e):
                logger.warning(f"⚠️ FCM Token not found in current project. Cleaning up: {token[:20]}...")
                raise ValueError("STALE_TOKEN")
            logger.error(f"❌ Failed to send notification: {e}")
            return None

# Singleton instance
fcm_manager = FCMManager()
