#!/usr/bin/env python3
"""Betterreads catalog CLI - dump import, lookups and search."""
import argparse
import sys
import json
import logging
from dataclasses import asdict

from tabulate import tabulate

from betterreads.client import OpenLibraryClient
from betterreads.config import Config
from betterreads.database import Database
from betterreads.importer import run_import

logger = logging.getLogger(__name__)


def setup_logging(config: Config, verbose: bool = False):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def setup_database(config: Config) -> Database:
    """Initialize database."""
    db = Database(config.DATABASE_URL)
    db.init_schema()
    return db


def import_dumps(args, config: Config):
    """Run the author and works import stages."""
    db = setup_database(config)

    try:
        results = run_import(
            db,
            author_path=args.authors or config.AUTHOR_DUMP_PATH,
            works_path=args.works or config.WORKS_DUMP_PATH,
            skip_authors=args.skip_authors,
            skip_works=args.skip_works,
            progress_interval=config.IMPORT_PROGRESS_INTERVAL
        )

        headers = ["Stage", "Lines", "Saved", "Failed", "Completed"]
        rows = [
            [stats.stage, stats.lines, stats.saved, stats.failed, "yes" if stats.completed else "NO"]
            for stats in results.values()
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

        if not all(stats.completed for stats in results.values()):
            sys.exit(1)

    finally:
        db.close()


def show_book(args, config: Config):
    """Show a stored book."""
    db = setup_database(config)

    try:
        book = db.get_book(args.book_id)
        if book is None:
            logger.error(f"Book not found: {args.book_id}")
            sys.exit(1)

        if args.format == "json":
            data = asdict(book)
            data["cover_image"] = book.cover_url
            print(json.dumps(data, indent=2, default=str))
        else:
            rows = [
                ["ID", book.id],
                ["Title", book.name],
                ["Authors", book.authors_str],
                ["Published", book.published_date or "Unknown"],
                ["Cover", book.cover_url],
                ["Description", (book.description or "")[:200]],
            ]
            print("\n" + tabulate(rows, tablefmt="grid"))

    finally:
        db.close()


def search_books(args, config: Config):
    """Search Open Library."""
    with OpenLibraryClient(
        base_url=config.OPEN_LIBRARY_SEARCH_URL,
        timeout=config.DEFAULT_TIMEOUT,
        max_buffer_bytes=config.SEARCH_MAX_BUFFER_BYTES
    ) as client:
        books = client.search_books(args.query, limit=min(args.limit, config.SEARCH_RESULT_LIMIT))

    display_search_results(books, args.format)


def display_search_results(books, format_type: str):
    """Display search results in specified format."""
    if format_type == "table":
        headers = ["Key", "Title", "Authors", "First Published", "Cover"]
        rows = [
            [
                book.key,
                book.title[:50] + "..." if len(book.title) > 50 else book.title,
                book.authors_str[:30] + "..." if len(book.authors_str) > 30 else book.authors_str,
                book.first_publish_year or "Unknown",
                book.cover_url
            ]
            for book in books
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([asdict(book) for book in books], indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.authors_str}")


def show_stats(args, config: Config):
    """Show database statistics."""
    db = setup_database(config)

    try:
        stats = db.get_stats()

        print("\n" + "=" * 50)
        print("DATABASE STATISTICS")
        print("=" * 50)
        print(f"Authors: {stats['total_authors']}")
        print(f"Books: {stats['total_books']}")
        print(f"User reading records: {stats['total_user_books']}")
        print("=" * 50 + "\n")

    finally:
        db.close()


def serve(args, config: Config):
    """Run the web app."""
    import uvicorn
    from betterreads.web import create_app

    uvicorn.run(create_app(config=config), host=args.host, port=args.port)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Betterreads - Open Library dump loader and catalog CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import both dumps (authors first, then works)
  %(prog)s import --authors ol_dump_authors.txt --works ol_dump_works.txt

  # Re-run only the works stage
  %(prog)s import --skip-authors

  # Look up a stored book
  %(prog)s book OL45804W --format json

  # Search Open Library
  %(prog)s search "the lord of the rings" --limit 20
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import author and works dumps")
    import_parser.add_argument("--authors", help="Author dump path (default: AUTHOR_DUMP_PATH)")
    import_parser.add_argument("--works", help="Works dump path (default: WORKS_DUMP_PATH)")
    import_parser.add_argument("--skip-authors", action="store_true", help="Skip the author stage")
    import_parser.add_argument("--skip-works", action="store_true", help="Skip the works stage")

    # Book command
    book_parser = subparsers.add_parser("book", help="Show a stored book")
    book_parser.add_argument("book_id", help="Work ID, e.g. OL45804W")
    book_parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")

    # Search command
    search_parser = subparsers.add_parser("search", help="Search Open Library")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")
    search_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Stats command
    subparsers.add_parser("stats", help="Show database statistics")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the web app")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    setup_logging(config, args.verbose)

    try:
        if args.command == "import":
            import_dumps(args, config)

        elif args.command == "book":
            show_book(args, config)

        elif args.command == "search":
            search_books(args, config)

        elif args.command == "stats":
            show_stats(args, config)

        elif args.command == "serve":
            serve(args, config)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
