from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from .artist import ArtistResponse
from .medium import MediumResponse, MediumWithRelease, MediumWithTracks, ReleaseWithMediums
from .pagination import Page
from .release import ReleaseSummary

class CDTOCResponse(BaseModel):
    # Parsed, not yet stored, TOCs have no id
    id: Optional[int] = None
    discid: str
    freedb_id: str
    track_count: int
    leadout_offset: int
    track_offsets: List[int]
    length: int

    model_config = ConfigDict(from_attributes=True)

class MediumCDTOCResponse(BaseModel):
    id: int
    cdtoc: CDTOCResponse
    medium: MediumWithRelease

    model_config = ConfigDict(from_attributes=True)

class AttachedCDTOC(BaseModel):
    id: int
    cdtoc: CDTOCResponse

    model_config = ConfigDict(from_attributes=True)

class MediumWithDiscIDs(MediumResponse):
    medium_cdtocs: List[AttachedCDTOC] = []

class CDStubTrackResponse(BaseModel):
    sequence: int
    title: str
    artist: Optional[str] = None
    length: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

class CDStubResponse(BaseModel):
    id: int
    title: str
    artist: Optional[str] = None
    barcode: Optional[str] = None
    comment: Optional[str] = None
    discid: Optional[str] = None
    track_count: int
    tracks: List[CDStubTrackResponse] = []

    model_config = ConfigDict(from_attributes=True)

class EditForm(BaseModel):
    """The confirmation form posted to enter an edit."""
    edit_note: Optional[str] = None
    make_votable: bool = False


# --- Page payloads. `page` names the view the client should render. ---

class CDTOCPage(BaseModel):
    page: str = "cdtoc/index"
    cdtoc: CDTOCResponse
    medium_cdtocs: List[MediumCDTOCResponse] = []

class AttachConfirmPage(BaseModel):
    page: str = "cdtoc/attach_confirm"
    cdtoc: CDTOCResponse
    medium: MediumWithRelease
    # Set when moving an existing disc ID rather than attaching a new one
    medium_cdtoc: Optional[MediumCDTOCResponse] = None

class AttachArtistReleasesPage(BaseModel):
    page: str = "cdtoc/attach_artist_releases"
    cdtoc: CDTOCResponse
    artist: Optional[ArtistResponse] = None
    releases: Page[ReleaseWithMediums]

class AttachFilterArtistPage(BaseModel):
    page: str = "cdtoc/attach_filter_artist"
    cdtoc: CDTOCResponse
    artists: Page[ArtistResponse]

class AttachFilterReleasePage(BaseModel):
    page: str = "cdtoc/attach_filter_release"
    cdtoc: CDTOCResponse
    results: Page[ReleaseWithMediums]

class LookupPage(BaseModel):
    page: str = "cdtoc/lookup"
    cdtoc: CDTOCResponse
    medium_cdtocs: List[MediumCDTOCResponse] = []
    cdstub: Optional[CDStubResponse] = None
    possible_mediums: List[MediumWithRelease] = []
    # Initial values of the two search forms
    artist_query: Optional[str] = None
    release_query: Optional[str] = None

class MoveSearchPage(BaseModel):
    page: str = "cdtoc/move_search"
    cdtoc: CDTOCResponse
    medium_cdtoc: MediumCDTOCResponse
    results: Optional[Page[ReleaseWithMediums]] = None

class RemoveConfirmPage(BaseModel):
    page: str = "cdtoc/remove"
    medium_cdtoc: MediumCDTOCResponse
    medium: MediumWithRelease
    release: ReleaseSummary

class SetDurationsPage(BaseModel):
    page: str = "cdtoc/set_durations"
    cdtoc: CDTOCResponse
    medium: MediumWithTracks
    release: ReleaseSummary
    old_lengths: List[Optional[int]] = Field(default_factory=list)
    new_lengths: List[int] = Field(default_factory=list)

class ReleaseDiscIDsPage(BaseModel):
    page: str = "release/discids"
    release: ReleaseSummary
    mediums: List[MediumWithDiscIDs] = []
