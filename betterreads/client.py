"""HTTP client for the Open Library search API."""
import json
import requests
from typing import Optional, Dict, Any, List
import logging

from betterreads.models import SearchResultBook
from betterreads.parse import parse_search_response

logger = logging.getLogger(__name__)


class ResponseTooLargeError(Exception):
    """The search response exceeded the buffering limit."""


class OpenLibraryClient:
    """
    Client for Open Library search.

    One blocking request per search, no retries: any HTTP or connection
    error propagates to the caller.
    """

    BASE_URL = "https://openlibrary.org/search.json"
    MAX_BUFFER_BYTES = 16 * 1024 * 1024
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 10,
        max_buffer_bytes: int = MAX_BUFFER_BYTES,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Open Library client.

        Args:
            base_url: Search endpoint (defaults to BASE_URL)
            timeout: Request timeout in seconds
            max_buffer_bytes: Largest response body accepted
            session: Optional pre-built session
        """
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.max_buffer_bytes = max_buffer_bytes

        # Create session for connection pooling
        self.session = session or requests.Session()

    def search(self, query: str) -> Dict[str, Any]:
        """
        Run a free-text search.

        Args:
            query: Search query string

        Returns:
            Decoded search.json response

        Raises:
            requests.RequestException: The request failed or returned an error status
            ResponseTooLargeError: The body exceeded max_buffer_bytes
        """
        logger.info(f"Searching Open Library: {query}")
        response = self.session.get(
            self.base_url,
            params={"q": query},
            timeout=self.timeout,
            stream=True
        )
        try:
            response.raise_for_status()
            body = self._read_body(response)
        finally:
            response.close()

        return json.loads(body)

    def _read_body(self, response: requests.Response) -> bytes:
        """Buffer the response body, refusing anything over the limit."""
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_buffer_bytes:
            raise ResponseTooLargeError(
                f"Response declares {declared} bytes, limit is {self.max_buffer_bytes}"
            )

        body = bytearray()
        for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > self.max_buffer_bytes:
                raise ResponseTooLargeError(f"Response exceeded {self.max_buffer_bytes} bytes")
        return bytes(body)

    def search_books(self, query: str, limit: int = 100) -> List[SearchResultBook]:
        """Search and normalize the first ``limit`` results for display."""
        books = parse_search_response(self.search(query), limit=limit)
        logger.info(f"Found {len(books)} results for: {query}")
        return books

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
