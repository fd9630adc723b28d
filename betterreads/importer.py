"""Import Open Library author and work dumps into the store."""
import logging
from typing import Callable, Dict, List, Optional

from betterreads.models import Book, ImportStats, UNKNOWN_AUTHOR
from betterreads.parse import ParseError, decode_dump_line, parse_dump_line, parse_author, parse_work

logger = logging.getLogger(__name__)

AUTHORS_STAGE = "authors"
WORKS_STAGE = "works"


def _stream_dump(
    path: str,
    stats: ImportStats,
    handle_line: Callable[[str], bool],
    progress_interval: int
) -> ImportStats:
    """
    Feed every non-blank line of a dump to ``handle_line``.

    Any error while decoding or handling a line skips that line only.
    File-level errors abort the stage and leave ``stats.completed`` False.
    """
    logger.info(f"Importing {stats.stage} from {path}")
    try:
        with open(path, "rb") as f:
            for line_number, raw_line in enumerate(f, 1):
                if not raw_line.strip():
                    continue
                stats.lines += 1

                try:
                    saved = handle_line(decode_dump_line(raw_line))
                except ParseError as e:
                    logger.warning(f"Skipping {stats.stage} line {line_number}: {e}")
                    saved = False
                except Exception:
                    logger.exception(f"Skipping {stats.stage} line {line_number}")
                    saved = False

                if saved:
                    stats.saved += 1
                else:
                    stats.failed += 1

                if progress_interval and stats.lines % progress_interval == 0:
                    logger.info(f"{stats.stage}: {stats.lines} lines, {stats.saved} saved, {stats.failed} failed")

    except OSError as e:
        logger.error(f"Aborting {stats.stage} import, cannot read {path}: {e}")
        return stats

    stats.completed = True
    logger.info(f"Finished {stats.stage}: {stats.lines} lines, {stats.saved} saved, {stats.failed} failed")
    return stats


def import_authors(path: str, db, progress_interval: int = 10000) -> ImportStats:
    """
    Load an author dump.

    Args:
        path: Path to the author dump file
        db: Store with ``upsert_author``
        progress_interval: Log progress every N lines (0 disables)

    Returns:
        ImportStats for the stage
    """
    def handle_line(line: str) -> bool:
        author = parse_author(parse_dump_line(line))
        logger.debug(f"Saving author: {author.name}...")
        return db.upsert_author(author)

    return _stream_dump(path, ImportStats(stage=AUTHORS_STAGE), handle_line, progress_interval)


def resolve_author_names(author_ids: List[str], db) -> List[str]:
    """Look up each author ID, falling back to the Unknown Author sentinel."""
    names = []
    for author_id in author_ids:
        author = db.get_author(author_id)
        names.append(author.name if author is not None else UNKNOWN_AUTHOR)
    return names


def import_works(
    path: str,
    db,
    progress_interval: int = 10000,
    policy: Optional[Dict[str, str]] = None
) -> ImportStats:
    """
    Load a works dump, denormalizing author names from the author store.

    Any failure while handling a line discards that whole book.

    Args:
        path: Path to the works dump file
        db: Store with ``get_author`` and ``upsert_book``
        progress_interval: Log progress every N lines (0 disables)
        policy: Per-field FATAL/DROP decisions passed to ``parse_work``

    Returns:
        ImportStats for the stage
    """
    def handle_line(line: str) -> bool:
        book: Book = parse_work(parse_dump_line(line), policy)
        book.author_names = resolve_author_names(book.author_ids, db)
        logger.debug(f"Saving book: {book.name}...")
        return db.upsert_book(book)

    return _stream_dump(path, ImportStats(stage=WORKS_STAGE), handle_line, progress_interval)


def run_import(
    db,
    author_path: str,
    works_path: str,
    skip_authors: bool = False,
    skip_works: bool = False,
    progress_interval: int = 10000
) -> Dict[str, ImportStats]:
    """
    Run the author stage, then the works stage.

    Each stage that reads its whole file writes a checkpoint. The works stage
    still runs without an authors checkpoint, but unresolved authors will
    come out as Unknown Author.

    Returns:
        ImportStats keyed by stage name, for the stages that ran
    """
    results = {}

    if not skip_authors:
        stats = import_authors(author_path, db, progress_interval)
        results[AUTHORS_STAGE] = stats
        if stats.completed:
            db.mark_import_completed(AUTHORS_STAGE)

    if not skip_works:
        if not db.import_completed(AUTHORS_STAGE):
            logger.warning("No completed author import found; book author names may resolve to Unknown Author")
        stats = import_works(works_path, db, progress_interval)
        results[WORKS_STAGE] = stats
        if stats.completed:
            db.mark_import_completed(WORKS_STAGE)

    return results
