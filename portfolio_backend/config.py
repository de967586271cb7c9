"""
Configuration management for the portfolio review backend.
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# Supabase configuration
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")

# Storage configuration
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "portfolio-files")
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Upload configuration (size ceiling is enforced by Flask, not the services)
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
ALLOWED_FILE_TYPES = ['.pdf', '.doc', '.docx', '.zip', '.rar']

# Session cache for resolved roles
SESSION_CACHE_TTL_SECONDS = int(os.getenv("SESSION_CACHE_TTL_SECONDS", "300"))


class Config:
    """Application configuration class."""

    def __init__(self):
        self.storage_bucket = STORAGE_BUCKET
        self.signed_url_ttl = SIGNED_URL_TTL_SECONDS
        self.max_upload_mb = MAX_UPLOAD_MB
        self.allowed_file_types = list(ALLOWED_FILE_TYPES)
        self.session_cache_ttl = SESSION_CACHE_TTL_SECONDS

    @property
    def max_content_length(self):
        return self.max_upload_mb * 1024 * 1024

    def to_dict(self):
        return {
            "storage_bucket": self.storage_bucket,
            "signed_url_ttl": self.signed_url_ttl,
            "max_upload_mb": self.max_upload_mb,
            "allowed_file_types": self.allowed_file_types,
            "session_cache_ttl": self.session_cache_ttl,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


# Global config instance
config = Config()
