import logging

import firebase_admin
from firebase_admin import credentials, firestore

from .config import FIREBASE_CLIENT_EMAIL, FIREBASE_PRIVATE_KEY, FIREBASE_PROJECT_ID

logger = logging.getLogger(__name__)

_client = None


def init_firebase() -> None:
    """Initialize the Firebase Admin SDK (only once)"""
    try:
        firebase_admin.get_app()
        return
    except ValueError:
        pass

    if FIREBASE_PROJECT_ID and FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY:
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": FIREBASE_PROJECT_ID,
                "client_email": FIREBASE_CLIENT_EMAIL,
                # Keys pasted into env files keep their newlines escaped
                "private_key": FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID})
        logger.info("Firebase Admin initialized with service account credentials")
    else:
        logger.warning("⚠️ Firebase service account variables missing, using default credentials")
        cred = credentials.ApplicationDefault()
        firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID})
        logger.info("Firebase Admin initialized with default credentials")


def get_firestore():
    """Lazily create the shared Firestore client"""
    global _client
    if _client is None:
        init_firebase()
        _client = firestore.client()
        logger.info("✅ Firestore client created")
    return _client


def get_db():
    yield get_firestore()
