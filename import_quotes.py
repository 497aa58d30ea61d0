import asyncio
import csv
import sys
from pathlib import Path

import structlog

from checkin_api.config import Settings
from checkin_api.db.database import create_engine, create_session_maker, init_db
from checkin_api.db.queries import insert_quotes

logger = structlog.get_logger()


def parse_csv(filepath: str) -> list:
    quotes = []

    with open(filepath, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)

        for line_no, row in enumerate(reader, start=2):
            text = (row.get('text') or '').strip()
            if not text:
                logger.warning("row_skipped", line=line_no, reason="empty text")
                continue
            quotes.append(text)

    return quotes


def chunk_quotes(quotes: list, chunk_size: int = 500):
    for i in range(0, len(quotes), chunk_size):
        yield quotes[i:i + chunk_size]


async def import_quotes(filepath: str, settings: Settings = None) -> int:
    settings = settings or Settings()
    engine = create_engine(settings.database_url)
    session_maker = create_session_maker(engine)

    logger.info("import_started", filepath=filepath)

    quotes = parse_csv(filepath)
    if not quotes:
        logger.error("no_quotes_found", filepath=filepath)
        await engine.dispose()
        return 0

    logger.info("quotes_parsed", count=len(quotes))

    inserted = 0
    try:
        await init_db(engine)
        async with session_maker() as session:
            for idx, chunk in enumerate(chunk_quotes(quotes)):
                added = await insert_quotes(session, chunk)
                inserted += added
                logger.info("chunk_imported", chunk_index=idx, size=len(chunk), inserted=added)
    finally:
        await engine.dispose()

    logger.info("import_completed", total_quotes=len(quotes), inserted=inserted)
    return inserted


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python import_quotes.py <path-to-csv>")
        sys.exit(1)

    filepath = sys.argv[1]

    if not Path(filepath).exists():
        print(f"File not found: {filepath}")
        sys.exit(1)

    asyncio.run(import_quotes(filepath))
