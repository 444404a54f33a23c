from pydantic import BaseModel, ConfigDict
from typing import Optional, List
import uuid
from .artist import ArtistResponse # Import artist schema

class ReleaseGroupMetaResponse(BaseModel):
    release_count: int = 0
    first_release_date_year: Optional[int] = None
    rating: Optional[int] = None
    rating_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

class ReleaseGroupResponse(BaseModel):
    id: int
    gid: uuid.UUID
    name: str
    meta: Optional[ReleaseGroupMetaResponse] = None

    model_config = ConfigDict(from_attributes=True)

class ReleaseSummary(BaseModel):
    id: int
    gid: uuid.UUID
    name: str
    barcode: Optional[str] = None
    comment: str = ""

    # These will automatically include the nested objects in the API response
    artist: Optional[ArtistResponse] = None
    release_group: Optional[ReleaseGroupResponse] = None

    model_config = ConfigDict(from_attributes=True)
