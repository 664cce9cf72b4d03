import logging
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore import Client as FirestoreClient

from .config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_firestore_client() -> Optional[FirestoreClient]:
    """
    Return the Firestore client, initialising the Firebase Admin app once.

    Returns None when the service-account env vars are missing so the
    server still starts and routes can answer with a clear error.
    """
    settings = get_settings()
    try:
        app = firebase_admin.get_app()
    except ValueError:
        if not settings.firebase_configured:
            logger.warning(
                "Missing Firebase Admin env vars - Firestore will NOT be initialised."
            )
            return None
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key_pem,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        app = firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
        logger.info(f"Firebase Admin initialised for project {settings.firebase_project_id}")
    return firestore.client(app)
