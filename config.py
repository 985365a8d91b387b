import os
import logging

from dotenv import load_dotenv

load_dotenv()

# ----------------------- Database -----------------------
MONGODB_URI = (os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL") or "mongodb://localhost:27017/mbizo-school").strip()
DATABASE_NAME = os.getenv("DATABASE_NAME")
DB_CONNECT_ATTEMPTS = int(os.getenv("DB_CONNECT_ATTEMPTS", 5))

# ----------------------- Security -----------------------
SECRET_KEY = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY") or "dev-secret-change-me"
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
DEFAULT_STUDENT_PASSWORD = os.getenv("DEFAULT_STUDENT_PASSWORD", "student123")
SEED_PASSWORD = os.getenv("SEED_PASSWORD", "password123")

# Comma-separated; empty means any origin
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

# ----------------------- Collaborators -----------------------
HF_MODEL = os.getenv("HF_MODEL") or os.getenv("HUGGINGFACE_MODEL") or "microsoft/DialoGPT-medium"
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY", "")
CHAT_TIMEOUT_SECONDS = float(os.getenv("CHAT_TIMEOUT_SECONDS", 15))
PAYMENT_PROCESSING_DELAY = float(os.getenv("PAYMENT_PROCESSING_DELAY", 2))

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
