from pydantic import BaseModel, ConfigDict
from typing import Optional, List
import uuid
from .release import ReleaseSummary

class MediumFormatResponse(BaseModel):
    id: int
    name: str
    has_discids: bool

    model_config = ConfigDict(from_attributes=True)

class RecordingInfo(BaseModel):
    id: int
    gid: uuid.UUID
    name: str
    length: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

class TrackResponse(BaseModel):
    id: int
    position: int
    number: str
    name: str
    length: Optional[int] = None
    recording: Optional[RecordingInfo] = None

    model_config = ConfigDict(from_attributes=True)

class MediumResponse(BaseModel):
    id: int
    position: int
    name: str = ""
    track_count: int
    format: Optional[MediumFormatResponse] = None
    may_have_discids: bool

    model_config = ConfigDict(from_attributes=True)

class MediumWithTracks(MediumResponse):
    tracks: List[TrackResponse] = []

class MediumWithRelease(MediumResponse):
    release: ReleaseSummary

class ReleaseWithMediums(ReleaseSummary):
    # Used for the candidate lists of the attach and move pages
    mediums: List[MediumWithTracks] = []
