import asyncio
import os
import sys
from dotenv import load_dotenv

# STEP 1: Set up the Python path for imports
# ------------------------------------------
# Add the 'Backend' directory to the system path so we can import from the 'mbserver' package.
backend_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'Backend'))
sys.path.append(backend_dir)

# STEP 2: Load environment variables
# ----------------------------------
# Load the .env file from the project root to get the DATABASE_URL.
project_root = os.path.dirname(backend_dir)
load_dotenv(os.path.join(project_root, ".env"))
print(" Environment loaded.")

# STEP 3: Import application modules (now that path and env are set)
# -----------------------------------------------------------------
from sqlalchemy import text

from mbserver.services.database import engine, Base
from mbserver.services.export_store import EXPORTED_SCHEMAS

# Registers every model on Base.metadata, including the ones in other schemas.
import mbserver.models.registry  # noqa: F401
print(" Application modules imported successfully.")


# --- Main Table Creation Logic ---
async def create_all_tables():
    """Creates the extra schemas, then all tables for the registered models."""
    print("\nConnecting to the database to create tables...")
    async with engine.begin() as conn:
        for schema in EXPORTED_SCHEMAS:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
        await conn.run_sync(Base.metadata.create_all)
    print(" All tables created successfully!")
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(create_all_tables())
