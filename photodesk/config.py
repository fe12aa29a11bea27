import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./photodesk.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Frontend base URL for CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Order lifecycle
# Days an order may sit in revision before the sweep approves it
AUTO_APPROVAL_DAYS = int(os.getenv("AUTO_APPROVAL_DAYS", "3"))
# Revision budget for orders created without an explicit maximum
DEFAULT_MAX_REVISION_ROUNDS = int(os.getenv("DEFAULT_MAX_REVISION_ROUNDS", "2"))
# How often the worker looks for due auto-approvals, in minutes; must divide 60
AUTO_APPROVAL_SWEEP_MINUTES = int(os.getenv("AUTO_APPROVAL_SWEEP_MINUTES", "15"))
