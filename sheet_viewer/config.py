import os
from dotenv import load_dotenv

load_dotenv()

SHEETS_BASE_URL = os.getenv("SHEETS_BASE_URL", "https://docs.google.com/spreadsheets/d")
MIRROR_BASE_URL = os.getenv("MIRROR_BASE_URL", "https://opensheet.elk.sh")

# Seconds allowed for each direct request, and the overall deadline for the
# callback strategy.
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "20"))
CALLBACK_TIMEOUT_SECONDS = float(os.getenv("CALLBACK_TIMEOUT_SECONDS", "15"))

# strftime format for Date(...) cells; "%x" follows the server locale.
DATE_FORMAT = os.getenv("DATE_FORMAT", "%x")

LINK_STORE_PATH = os.getenv("LINK_STORE_PATH", ".sheet_viewer_link.json")
LINK_STORE_KEY = "projectStatusSheetLink"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_cors_origins() -> list[str]:
    """Comma separated CORS_ORIGINS, defaulting to any origin."""
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
