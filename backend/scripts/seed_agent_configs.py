import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

# --- [settings] ---
# Load backend/.env relative to this script and make the app package importable
current_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(current_dir)
sys.path.append(backend_dir)

dotenv_path = os.path.join(backend_dir, '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    print(f"Warning: .env file not found at {dotenv_path}")

from app.core.config import settings
from app.core.default_configs import default_agent_configs
from app.db.session import AsyncSessionLocal, close_db, init_db
from app.services.config_store import SQLAlchemyAgentConfigStore


async def seed_agent_configs(provider: str, overwrite: bool) -> None:
    print(f"🔌 Connecting to database: {settings.DATABASE_URL}")

    print("🔨 Creating tables if they don't exist...")
    if not await init_db():
        print("❌ Could not create tables")
        return

    store = SQLAlchemyAgentConfigStore(AsyncSessionLocal)
    configs = default_agent_configs(provider)

    print(f"🌱 Seeding agent configurations for provider '{provider}'...")
    if overwrite:
        for config_key, config_data in configs.items():
            await store.put(config_key, config_data, updated_by="seed")
        print(f"✅ Wrote {len(configs)} configurations")
    else:
        added = await store.seed_missing(configs)
        print(f"✅ Added {added} configurations ({len(configs) - added} already present)")

    await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default agent configuration documents")
    parser.add_argument("--provider", default=settings.AGENT_PROVIDER, help="Provider suffix of the config keys")
    parser.add_argument("--overwrite", action="store_true", help="Replace documents that already exist")
    args = parser.parse_args()

    asyncio.run(seed_agent_configs(args.provider, args.overwrite))
