"""Environment configuration."""

import os
from dotenv import load_dotenv

load_dotenv(override=True)

DB_PATH = os.environ.get("REFERRAL_DB_PATH", ":memory:")

EHR_BASE_URL = os.environ.get("EHR_BASE_URL", "http://localhost:3000/mercy-ehr").rstrip("/")
EHR_TIMEOUT_SECONDS = float(os.environ.get("EHR_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# first-open-referral | matched-referral
CONSENT_PROVIDER_STRATEGY = os.environ.get("CONSENT_PROVIDER_STRATEGY", "first-open-referral")
