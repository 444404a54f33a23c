import hashlib
import hmac
import logging
import secrets
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from mbserver.core.config import settings
from mbserver.core.exceptions import ReadOnlyError, UnauthorizedError
from mbserver.models.registry import Editor
from mbserver.services.database import get_db

logger = logging.getLogger(__name__)

# auto_error=False so anonymous requests reach the endpoint; the workflows
# decide when a login is required.
http_basic = HTTPBasic(auto_error=False, realm="MusicBrainz")

PBKDF2_ITERATIONS = 260000


def get_password_hash(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


async def get_current_editor_optional(
    credentials: Optional[HTTPBasicCredentials] = Depends(http_basic),
    db: AsyncSession = Depends(get_db)
) -> Optional[Editor]:
    """The logged in editor, or None for anonymous requests."""
    if credentials is None:
        return None

    result = await db.execute(
        select(Editor).where(Editor.name == credentials.username, Editor.deleted.is_(False))
    )
    editor = result.scalar_one_or_none()
    if editor is None or not verify_password(credentials.password, editor.password):
        logger.info(f"Failed login attempt for editor '{credentials.username}'")
        raise UnauthorizedError("Incorrect username or password")
    return editor


async def get_current_editor(editor: Optional[Editor] = Depends(get_current_editor_optional)) -> Editor:
    if editor is None:
        raise UnauthorizedError("You need to be logged in to enter edits")
    return editor


async def deny_when_readonly() -> None:
    if settings.DB_READ_ONLY:
        raise ReadOnlyError()
