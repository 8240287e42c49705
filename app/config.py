"""
Academy Backend Configuration
Environment driven settings, read once at import time
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "academy_db")

# Auth (tokens are issued by the identity provider, HS256 shared secret)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Scheduler shared secret for /cron endpoints
CRON_SECRET = os.getenv("CRON_SECRET", "")

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")

# Email delivery (SendGrid v3)
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "")
SENDGRID_API_URL = os.getenv("SENDGRID_API_URL", "https://api.sendgrid.com/v3/mail/send")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "noreply@academy.local")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Academy")
EMAIL_TIMEOUT_SECONDS = 10

VERSION = os.getenv("VERSION", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Cache TTLs
COURSE_LIST_CACHE_SECONDS = 300
COURSE_LIST_ALL_CACHE_SECONDS = 60
LEADERBOARD_CACHE_SECONDS = 60
CONTENT_SETTINGS_CACHE_SECONDS = 300

INVITATION_EXPIRY_DAYS = 7
