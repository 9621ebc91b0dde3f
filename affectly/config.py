import os
import logging
from dotenv import load_dotenv

# Load .env locally; in deployment env vars are injected automatically.
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class Config:
    """Environment-backed settings for the Affectly backend"""

    # --- Database ---
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///affectly.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Web ---
    FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "")
    PORT = int(os.getenv("PORT", "5000"))

    # --- Paystack ---
    PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "").strip()
    PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
    PAYSTACK_TIMEOUT = float(os.getenv("PAYSTACK_TIMEOUT", "10"))
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "KES")
    PREMIUM_PRICE_KES = int(os.getenv("PREMIUM_PRICE_KES", "600"))

    # --- Journal ---
    # Shift applied to UTC when computing the user's calendar day.
    DAY_OFFSET_MINUTES = int(os.getenv("DAY_OFFSET_MINUTES", "0"))

    @classmethod
    def validate(cls):
        """Warn about settings the payment path needs."""
        if not cls.PAYSTACK_SECRET_KEY:
            logger.warning("PAYSTACK_SECRET_KEY not set; upgrades will fail to initialize")
        if not cls.FRONTEND_ORIGIN:
            logger.info("FRONTEND_ORIGIN not set; CORS allows all origins")
        return True
