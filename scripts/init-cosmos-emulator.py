#!/usr/bin/env python3
"""
Initialize the Cosmos DB Emulator with the planning poker database and containers.

Run this once after starting the emulator so STORE_BACKEND=cosmos works
against a local emulator.

Prerequisites:
1. Install Cosmos DB Emulator: https://aka.ms/cosmosdb-emulator
2. Start the emulator (it runs on https://localhost:8081)
3. Run this script: python scripts/init-cosmos-emulator.py

The emulator uses a well-known key that is safe for local development only.
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent / "src" / "backend"
sys.path.insert(0, str(backend_path))

from azure.cosmos import PartitionKey  # noqa: E402
from azure.cosmos.aio import CosmosClient  # noqa: E402

from db.cosmos_session import PARTITION_KEY_PATH  # noqa: E402
from db.store import ALL_COLLECTIONS  # noqa: E402

# Cosmos DB Emulator connection details (well-known credentials)
EMULATOR_ENDPOINT = "https://localhost:8081"
EMULATOR_KEY = "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
DATABASE_NAME = "planning-poker"


async def init_emulator() -> None:
    """Create the database and one container per game collection."""
    print(f"🚀 Connecting to Cosmos DB Emulator at {EMULATOR_ENDPOINT}...")

    # Emulator uses a self-signed certificate
    client = CosmosClient(
        url=EMULATOR_ENDPOINT,
        credential=EMULATOR_KEY,
        connection_verify=False,
    )

    try:
        print(f"\n📁 Creating database: {DATABASE_NAME}")
        database = await client.create_database_if_not_exists(id=DATABASE_NAME)

        print("\n📦 Creating containers...")
        for name in ALL_COLLECTIONS:
            await database.create_container_if_not_exists(
                id=name,
                partition_key=PartitionKey(path=PARTITION_KEY_PATH),
            )
            print(f"   ✅ Container '{name}' (partition: {PARTITION_KEY_PATH})")

        print("\n✨ Cosmos DB Emulator initialization complete!")
        print("\n📋 Next steps:")
        print("   1. Set STORE_BACKEND=cosmos and AZURE_COSMOS_CONNECTION_STRING in src/backend/.env")
        print("   2. Set AZURE_COSMOS_DISABLE_SSL=true for the emulator certificate")
    finally:
        await client.close()


if __name__ == "__main__":
    print("=" * 60)
    print("Planning Poker - Cosmos DB Emulator Initialization")
    print("=" * 60)
    asyncio.run(init_emulator())
