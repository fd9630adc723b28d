"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "betterreads")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Dump files
    AUTHOR_DUMP_PATH = os.getenv("AUTHOR_DUMP_PATH", "data/ol_dump_authors.txt")
    WORKS_DUMP_PATH = os.getenv("WORKS_DUMP_PATH", "data/ol_dump_works.txt")
    IMPORT_PROGRESS_INTERVAL = int(os.getenv("IMPORT_PROGRESS_INTERVAL", "10000"))

    # Open Library search
    OPEN_LIBRARY_SEARCH_URL = os.getenv("OPEN_LIBRARY_SEARCH_URL", "https://openlibrary.org/search.json")
    SEARCH_MAX_BUFFER_BYTES = int(os.getenv("SEARCH_MAX_BUFFER_BYTES", str(16 * 1024 * 1024)))
    SEARCH_RESULT_LIMIT = int(os.getenv("SEARCH_RESULT_LIMIT", "100"))

    # Web
    LOGIN_HEADER = os.getenv("LOGIN_HEADER", "X-Auth-Login")

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
