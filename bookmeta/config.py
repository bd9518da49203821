"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Library configuration."""
    
    # API
    GOOGLE_BOOKS_API_KEY = os.getenv("GOOGLE_BOOKS_API_KEY")
    
    # Requests
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    DEFAULT_LIMIT = int(os.getenv("DEFAULT_LIMIT", "10"))
    
    # Backoff between retry attempts (seconds)
    BACKOFF_BASE_DELAY = float(os.getenv("BACKOFF_BASE_DELAY", "0.5"))
    BACKOFF_FACTOR = float(os.getenv("BACKOFF_FACTOR", "1.5"))
    BACKOFF_MAX_DELAY = float(os.getenv("BACKOFF_MAX_DELAY", "8.0"))
