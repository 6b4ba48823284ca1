import json
import logging
import os
from typing import Optional

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import auth as firebase_auth, credentials

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

_app: Optional[firebase_admin.App] = None


def initialize_firebase() -> firebase_admin.App:
    """Initialize the Firebase Admin SDK on first use and return the app."""
    global _app
    if _app is not None:
        return _app

    # Method 1: Service Account Key JSON from environment variable (production)
    service_account_key_json = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY")
    if service_account_key_json:
        try:
            cred = credentials.Certificate(json.loads(service_account_key_json))
            _app = firebase_admin.initialize_app(cred)
            logger.info("Firebase Admin SDK initialized from FIREBASE_SERVICE_ACCOUNT_KEY.")
            return _app
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Error parsing FIREBASE_SERVICE_ACCOUNT_KEY: {e}")

    # Method 2: Service Account Key file (local development)
    service_account_key_path = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY_PATH")
    if service_account_key_path and os.path.exists(service_account_key_path):
        _app = firebase_admin.initialize_app(credentials.Certificate(service_account_key_path))
        logger.info("Firebase Admin SDK initialized from key file.")
        return _app

    # Method 3: GOOGLE_APPLICATION_CREDENTIALS or other ADC sources
    _app = firebase_admin.initialize_app()
    logger.info("Firebase Admin SDK initialized with Application Default Credentials.")
    return _app


def verify_id_token(token: str) -> dict:
    initialize_firebase()
    return firebase_auth.verify_id_token(token)
