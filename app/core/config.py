import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/restaurant_db")

# Application Metadata
PROJECT_NAME = "Restaurant Order Flow Service"
VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Listing endpoints
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 20))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

# Seconds to wait for in-flight notifications on shutdown
NOTIFICATION_DRAIN_TIMEOUT = float(os.getenv("NOTIFICATION_DRAIN_TIMEOUT", 5))
