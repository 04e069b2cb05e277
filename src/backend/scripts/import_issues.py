"""
Import issues into a game from a CSV file.

Each non-empty line is "title[,description]". Lines are added in file
order; a failure part way leaves the earlier lines imported.

Run with: python scripts/import_issues.py <game_id> issues.csv
"""

import asyncio
import sys
from pathlib import Path

from _common import document_store

from core.exceptions import GameNotFoundError
from services.issue_service import IssueQueue
from services.session_service import SessionService


async def import_issues(game_id: str, csv_file: Path) -> int:
    csv_text = csv_file.read_text(encoding="utf-8")

    async with document_store() as store:
        if await SessionService(store).get_session(game_id) is None:
            raise GameNotFoundError(game_id)
        count = await IssueQueue(store).import_issues_from_csv(game_id, csv_text)

    print(f"Imported {count} issues into game {game_id}")
    return count


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Import issues from a CSV file")
    parser.add_argument("game_id", help="Game to import into")
    parser.add_argument("csv_file", type=Path, help="CSV file with one issue per line")
    args = parser.parse_args()

    try:
        asyncio.run(import_issues(args.game_id, args.csv_file))
    except GameNotFoundError as e:
        print(f"❌ {e}")
        sys.exit(1)
