"""
Repair a game left half-way through a round transition.

Clears a current issue that was deleted or already estimated and finishes
an interrupted round reset. Running it on a healthy game changes nothing.

Run with: python scripts/repair_session.py <game_id>
"""

import asyncio
import sys

from _common import document_store

from core.exceptions import GameNotFoundError
from services.session_service import SessionService


async def repair(game_id: str) -> list[str]:
    async with document_store() as store:
        repairs = await SessionService(store).repair_session(game_id)

    if repairs:
        print(f"Repaired game {game_id}:")
        for name in repairs:
            print(f"   ✅ {name}")
    else:
        print(f"Game {game_id} is consistent, nothing to repair")
    return repairs


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Repair a game's round state")
    parser.add_argument("game_id", help="Game to repair")
    args = parser.parse_args()

    try:
        asyncio.run(repair(args.game_id))
    except GameNotFoundError as e:
        print(f"❌ {e}")
        sys.exit(1)
