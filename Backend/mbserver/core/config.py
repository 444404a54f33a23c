import os
import tempfile
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

# Calculate the absolute path to the .env file.
# It finds this file's location and navigates up to the project root.
_config_dir = os.path.dirname(os.path.abspath(__file__))
_backend_dir = os.path.dirname(os.path.dirname(_config_dir))
_project_root = os.path.dirname(_backend_dir)
_dotenv_path = os.path.join(_project_root, '.env')



class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://musicbrainz@localhost:5432/musicbrainz_db"

    # Written to SCHEMA_SEQUENCE in every export
    DB_SCHEMA_SEQUENCE: int = 29

    # Edits are refused while the database is in read-only mode
    DB_READ_ONLY: bool = False

    # Export signing / encryption. Nothing is signed or encrypted when unset.
    GPG_SIGN_KEY: Optional[str] = None
    GPG_ENCRYPT_RECIPIENT: Optional[str] = None

    EXPORT_OUTPUT_DIR: str = "."
    EXPORT_TMP_DIR: str = tempfile.gettempdir()

    SEARCH_PAGE_SIZE: int = 25

    model_config = SettingsConfigDict(
        env_file=_dotenv_path,
        env_file_encoding='utf-8',
        extra='ignore'
    )

settings = Settings()
