import os

DATABASE_URL = os.getenv(
    "ACADEMY_DB_URL",
    "sqlite:///./academy.db"
)

# Optional directory holding the browser front end (index.html, assets/).
STATIC_DIR = os.getenv("ACADEMY_STATIC_DIR")

LOG_LEVEL = os.getenv("ACADEMY_LOG_LEVEL", "INFO").upper()
