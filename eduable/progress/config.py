"""
Learning Progress Configuration
Database, auth and analytics settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "eduable_db")

# Auth (shared secret with the auth service)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = "HS256"

# Analytics settings
WEAK_TOPIC_WINDOW = 5
WEAK_TOPICS_IN_RESPONSE = 3
DEFAULT_PASSING_SCORE = 60

# Certificates
CERTIFICATE_URL_TEMPLATE = os.getenv(
    "CERTIFICATE_URL_TEMPLATE",
    "/certificates/eduable-{course_id}-{user_id}.pdf"
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
