from fastapi import HTTPException
from typing import Any, Dict, Optional

class MusicBrainzException(HTTPException):
    """Base exception for the MusicBrainz API"""
    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

class NotFoundException(MusicBrainzException):
    """Resource not found"""
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            status_code=404,
            detail=f"{resource} with id {resource_id} not found"
        )

class UnauthorizedError(MusicBrainzException):
    """User is not authorized"""
    def __init__(self, message: str = "Not authorized"):
        super().__init__(
            status_code=401,
            detail=message,
            headers={"WWW-Authenticate": 'Basic realm="MusicBrainz"'}
        )

class ReadOnlyError(MusicBrainzException):
    """The database is in read-only mode, no edits can be entered"""
    def __init__(self):
        super().__init__(
            status_code=503,
            detail="The server is temporarily in read-only mode for database maintenance"
        )


# --- Disc ID workflow errors. All of these are raised before an edit exists. ---

class BadRequestError(MusicBrainzException):
    def __init__(self, message: str):
        super().__init__(status_code=400, detail=message)

class InvalidTocFormat(BadRequestError):
    def __init__(self, message: str = "The provided CD TOC is not valid"):
        super().__init__(message)

class InvalidParameter(BadRequestError):
    def __init__(self, parameter: str = "medium"):
        super().__init__(f"The provided {parameter} id is not valid")

class MissingParameter(BadRequestError):
    def __init__(self, message: str = "Please provide a medium ID"):
        super().__init__(message)

class MediumNotFound(BadRequestError):
    def __init__(self):
        super().__init__("Could not find medium")

class IneligibleMedium(BadRequestError):
    def __init__(self):
        super().__init__("The selected medium cannot have disc IDs")

class DuplicateAttachment(BadRequestError):
    def __init__(self):
        super().__init__("This CDTOC is already attached to this medium")

class TrackCountMismatch(BadRequestError):
    def __init__(self, medium_tracks: int, toc_tracks: int):
        super().__init__(
            f"The medium has {medium_tracks} tracks but the CD TOC has {toc_tracks}"
        )

class EditNoteRequired(BadRequestError):
    def __init__(self):
        super().__init__("You must provide an edit note")


# --- Export job errors. These abort the run. ---

class ExportError(Exception):
    """Base class for errors that abort a database export"""

class ExternalToolFailure(ExportError):
    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(f"{tool} failed: {message}")

class LockContention(ExportError):
    def __init__(self, lock_path: str):
        self.lock_path = lock_path
        super().__init__(f"Another export is already running (lock held on {lock_path})")
