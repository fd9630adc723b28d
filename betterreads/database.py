"""Database layer for authors, books and user reading status."""
import psycopg2
from psycopg2 import pool
from typing import Optional, Dict, Any
import logging

from betterreads.models import Author, Book, UserBook

logger = logging.getLogger(__name__)


class Database:
    """PostgreSQL database with connection pooling."""

    def __init__(self, connection_string: str, min_conn: int = 1, max_conn: int = 10):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        self.connection_pool = psycopg2.pool.SimpleConnectionPool(
            min_conn,
            max_conn,
            connection_string
        )

        if self.connection_pool:
            logger.info("Database connection pool created successfully")
        else:
            raise Exception("Failed to create connection pool")

    def init_schema(self):
        """Create database tables if they don't exist."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS authors (
                        id VARCHAR(64) PRIMARY KEY,
                        name TEXT NOT NULL DEFAULT '',
                        personal_name TEXT NOT NULL DEFAULT ''
                    )
                """)

                cur.execute("""
                    CREATE TABLE IF NOT EXISTS books (
                        id VARCHAR(64) PRIMARY KEY,
                        name TEXT NOT NULL DEFAULT '',
                        description TEXT,
                        published_date DATE,
                        cover_ids TEXT[],
                        author_ids TEXT[],
                        author_names TEXT[]
                    )
                """)

                cur.execute("""
                    CREATE TABLE IF NOT EXISTS user_books (
                        user_id VARCHAR(255) NOT NULL,
                        book_id VARCHAR(64) NOT NULL,
                        started_date DATE,
                        completed_date DATE,
                        reading_status TEXT,
                        rating INTEGER,
                        PRIMARY KEY (user_id, book_id)
                    )
                """)

                cur.execute("""
                    CREATE TABLE IF NOT EXISTS import_checkpoints (
                        stage VARCHAR(32) PRIMARY KEY,
                        completed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                conn.commit()
                logger.info("Database schema initialized successfully")

        finally:
            self.connection_pool.putconn(conn)

    def upsert_author(self, author: Author) -> bool:
        """
        Insert or overwrite an author.

        Args:
            author: Author object

        Returns:
            True if successful, False otherwise
        """
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO authors (id, name, personal_name)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        name = EXCLUDED.name,
                        personal_name = EXCLUDED.personal_name
                """, (author.id, author.name, author.personal_name))
                conn.commit()
                return True
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to upsert author {author.id}: {e}")
            return False
        finally:
            self.connection_pool.putconn(conn)

    def get_author(self, author_id: str) -> Optional[Author]:
        """Get an author by ID."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT id, name, personal_name
                    FROM authors WHERE id = %s
                """, (author_id,))

                row = cur.fetchone()
                if row:
                    return Author(*row)
                return None
        finally:
            self.connection_pool.putconn(conn)

    def upsert_book(self, book: Book) -> bool:
        """
        Insert or overwrite a book.

        Args:
            book: Book object

        Returns:
            True if successful, False otherwise
        """
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO books (
                        id, name, description, published_date,
                        cover_ids, author_ids, author_names
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        name = EXCLUDED.name,
                        description = EXCLUDED.description,
                        published_date = EXCLUDED.published_date,
                        cover_ids = EXCLUDED.cover_ids,
                        author_ids = EXCLUDED.author_ids,
                        author_names = EXCLUDED.author_names
                """, (
                    book.id, book.name, book.description, book.published_date,
                    book.cover_ids, book.author_ids, book.author_names
                ))
                conn.commit()
                return True
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to upsert book {book.id}: {e}")
            return False
        finally:
            self.connection_pool.putconn(conn)

    def get_book(self, book_id: str) -> Optional[Book]:
        """Get a book by ID."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT id, name, description, published_date,
                           cover_ids, author_ids, author_names
                    FROM books WHERE id = %s
                """, (book_id,))

                row = cur.fetchone()
                if row:
                    book_id, name, description, published_date, cover_ids, author_ids, author_names = row
                    return Book(
                        id=book_id,
                        name=name,
                        description=description,
                        published_date=published_date,
                        cover_ids=cover_ids or [],
                        author_ids=author_ids or [],
                        author_names=author_names or []
                    )
                return None
        finally:
            self.connection_pool.putconn(conn)

    def upsert_user_book(self, user_book: UserBook) -> bool:
        """
        Insert or overwrite a user's reading status for a book.

        Args:
            user_book: UserBook object

        Returns:
            True if successful, False otherwise
        """
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO user_books (
                        user_id, book_id, started_date, completed_date,
                        reading_status, rating
                    ) VALUES (%s, %s, %s, %s, %s, %s)
                    ON CONFLICT (user_id, book_id) DO UPDATE SET
                        started_date = EXCLUDED.started_date,
                        completed_date = EXCLUDED.completed_date,
                        reading_status = EXCLUDED.reading_status,
                        rating = EXCLUDED.rating
                """, (
                    user_book.user_id, user_book.book_id, user_book.started_date,
                    user_book.completed_date, user_book.reading_status, user_book.rating
                ))
                conn.commit()
                return True
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to upsert user book ({user_book.user_id}, {user_book.book_id}): {e}")
            return False
        finally:
            self.connection_pool.putconn(conn)

    def get_user_book(self, user_id: str, book_id: str) -> Optional[UserBook]:
        """Get a user's reading status for a book."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT user_id, book_id, started_date, completed_date,
                           reading_status, rating
                    FROM user_books WHERE user_id = %s AND book_id = %s
                """, (user_id, book_id))

                row = cur.fetchone()
                if row:
                    return UserBook(*row)
                return None
        finally:
            self.connection_pool.putconn(conn)

    def mark_import_completed(self, stage: str) -> bool:
        """Record that an import stage read its whole dump."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO import_checkpoints (stage, completed_at)
                    VALUES (%s, CURRENT_TIMESTAMP)
                    ON CONFLICT (stage) DO UPDATE SET
                        completed_at = CURRENT_TIMESTAMP
                """, (stage,))
                conn.commit()
                logger.info(f"Import checkpoint written: {stage}")
                return True
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to write import checkpoint {stage}: {e}")
            return False
        finally:
            self.connection_pool.putconn(conn)

    def import_completed(self, stage: str) -> bool:
        """Check whether an import stage has a checkpoint."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 FROM import_checkpoints WHERE stage = %s", (stage,))
                return cur.fetchone() is not None
        finally:
            self.connection_pool.putconn(conn)

    def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM authors")
                author_count = cur.fetchone()[0]

                cur.execute("SELECT COUNT(*) FROM books")
                book_count = cur.fetchone()[0]

                cur.execute("SELECT COUNT(*) FROM user_books")
                user_book_count = cur.fetchone()[0]

                return {
                    "total_authors": author_count,
                    "total_books": book_count,
                    "total_user_books": user_book_count
                }
        finally:
            self.connection_pool.putconn(conn)

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
