"""
Export a game's issues as CSV.

Run with: python scripts/export_issues.py <game_id> [--output issues.csv]
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

from _common import document_store

from services.issue_service import IssueQueue


async def export_issues(game_id: str, output: Optional[Path]) -> None:
    async with document_store() as store:
        csv_text = await IssueQueue(store).export_issues_to_csv(game_id)

    if output is None:
        print(csv_text)
    else:
        output.write_text(csv_text + "\n", encoding="utf-8")
        print(f"Wrote issues of game {game_id} to {output}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Export a game's issues as CSV")
    parser.add_argument("game_id", help="Game to export")
    parser.add_argument("--output", "-o", type=Path, help="File to write (default: stdout)")
    args = parser.parse_args()

    try:
        asyncio.run(export_issues(args.game_id, args.output))
    except KeyboardInterrupt:
        sys.exit(130)
