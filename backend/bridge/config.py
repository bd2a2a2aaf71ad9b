import os
from dotenv import load_dotenv

if not os.getenv("FLY_APP_NAME"):
    load_dotenv(override=False)

class Settings:
    SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL", "")
    GITHUB_WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET", "")
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8080"))
    SUPPORTED_BRANCHES = [
        x.strip() for x in os.getenv("SUPPORTED_BRANCHES", "main,master,prod").split(",") if x.strip()
    ]
    # how long a failing build is remembered; 7 days by default
    FAILURE_RETENTION_HOURS = int(os.getenv("FAILURE_RETENTION_HOURS", "168"))
    # ignore runs created more than this many days ago; 0 keeps every run
    STALE_RUN_DAYS = int(os.getenv("STALE_RUN_DAYS", "0"))
    CHAT_USERNAME = os.getenv("CHAT_USERNAME", "bottie")
    CHAT_ICON_EMOJI = os.getenv("CHAT_ICON_EMOJI", ":rocket:")
    CHAT_TIMEOUT_SECONDS = float(os.getenv("CHAT_TIMEOUT_SECONDS", "10"))


settings = Settings()
