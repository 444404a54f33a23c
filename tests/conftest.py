"""
Pytest fixtures for the disc ID workflow and export tests.

The workflow runs against in-memory repositories holding transient model
instances, so no database is needed:

- release "Wish You Were Here" with three mediums:
  1: CD, 2 tracks, disc ID SINGLE_TOC attached
  2: vinyl, 2 tracks (cannot have disc IDs)
  3: CD, 2 tracks, nothing attached
- a CD stub for STUB_TOC
- NEW_TOC, a 2 track TOC attached nowhere
"""

import uuid
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mbserver.api import cdtoc, releases
from mbserver.core.security import get_current_editor_optional, get_password_hash
from mbserver.models.registry import (
    Artist,
    CDStub,
    CDStubTOC,
    CDStubTrack,
    CDTOC,
    Editor,
    Medium,
    MediumCDTOC,
    MediumFormat,
    Release,
    ReleaseGroup,
    Track,
)
from mbserver.services.discid import TableOfContents
from mbserver.services.edit_service import get_edit_service
from mbserver.services.repositories import Repositories, get_repositories

SINGLE_TOC = "1 2 38600 150 19350"
NEW_TOC = "1 2 40000 150 20000"
STUB_TOC = "1 3 61000 150 20150 41200"

RELEASE_GID = uuid.UUID("1f8b3d2c-0e1a-4c55-9d8e-6b0a3b1b9a01")
EDITOR_PASSWORD = "mb"


# =============================================================================
# In-memory repositories
# =============================================================================

class FakeMusicBrainz:
    """Entity store shared by the fake repositories."""

    def __init__(self):
        self.artists: Dict[int, Artist] = {}
        self.releases: Dict[int, Release] = {}
        self.mediums: Dict[int, Medium] = {}
        self.cdtocs: Dict[str, CDTOC] = {}
        self.medium_cdtocs: Dict[int, MediumCDTOC] = {}
        self.cdstubs: Dict[str, CDStub] = {}

    def build_repositories(self) -> Repositories:
        return Repositories(
            artists=FakeArtistRepository(self),
            releases=FakeReleaseRepository(self),
            mediums=FakeMediumRepository(self),
            cdtocs=FakeCDTOCRepository(self),
            medium_cdtocs=FakeMediumCDTOCRepository(self),
            cdstubs=FakeCDStubRepository(self),
            search=FakeSearchRepository(self),
        )


class FakeArtistRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_id(self, artist_id: int) -> Optional[Artist]:
        return self.data.artists.get(artist_id)


class FakeReleaseRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_gid(self, gid: uuid.UUID) -> Optional[Release]:
        return next((r for r in self.data.releases.values() if r.gid == gid), None)

    async def find_for_cdtoc(self, artist_id: int, track_count: int, limit: int, offset: int):
        found = [
            r for r in self.data.releases.values()
            if r.artist_id == artist_id and any(m.track_count == track_count for m in r.mediums)
        ]
        return found[offset:offset + limit], len(found)


class FakeMediumRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_id(self, medium_id: int) -> Optional[Medium]:
        return self.data.mediums.get(medium_id)

    async def find_for_cdstub(self, cdstub: CDStub, limit: int = 10) -> List[Medium]:
        return [
            m for m in self.data.mediums.values()
            if m.track_count == cdstub.track_count and m.may_have_discids
        ][:limit]


class FakeCDTOCRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_discid(self, discid: str) -> Optional[CDTOC]:
        return self.data.cdtocs.get(discid)


class FakeMediumCDTOCRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_id(self, medium_cdtoc_id: int) -> Optional[MediumCDTOC]:
        return self.data.medium_cdtocs.get(medium_cdtoc_id)

    async def get_by_medium_cdtoc(self, medium_id: int, cdtoc_id: int) -> Optional[MediumCDTOC]:
        return next(
            (mc for mc in self.data.medium_cdtocs.values()
             if mc.medium_id == medium_id and mc.cdtoc_id == cdtoc_id),
            None,
        )

    async def find_by_discid(self, discid: str) -> List[MediumCDTOC]:
        return [mc for mc in self.data.medium_cdtocs.values() if mc.cdtoc.discid == discid]

    async def medium_has_cdtoc(self, medium_id: int, discid: str) -> bool:
        return any(
            mc.medium_id == medium_id and mc.cdtoc.discid == discid
            for mc in self.data.medium_cdtocs.values()
        )


class FakeCDStubRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def get_by_discid(self, discid: str) -> Optional[CDStub]:
        return self.data.cdstubs.get(discid)


class FakeSearchRepository:
    def __init__(self, data: FakeMusicBrainz):
        self.data = data

    async def search_artists(self, query: str, limit: int, offset: int):
        found = [a for a in self.data.artists.values() if query.lower() in a.name.lower()]
        return found[offset:offset + limit], len(found)

    async def search_releases(self, query: str, limit: int, offset: int, track_count: Optional[int] = None):
        found = [
            r for r in self.data.releases.values()
            if query.lower() in r.name.lower()
            and (track_count is None or any(m.track_count == track_count for m in r.mediums))
        ]
        return found[offset:offset + limit], len(found)


class FakeEditService:
    """Records the edits that would have been entered."""

    def __init__(self):
        self.edits: List[SimpleNamespace] = []

    async def create_edit(self, edit_type, editor, data, edit_note=None, make_votable=False):
        edit = SimpleNamespace(
            id=len(self.edits) + 1,
            type=edit_type,
            editor=editor,
            data=data,
            edit_note=edit_note,
            make_votable=make_votable,
        )
        self.edits.append(edit)
        return edit


# =============================================================================
# Data Fixtures
# =============================================================================

def _medium(medium_id: int, release: Release, position: int, fmt: MediumFormat, lengths) -> Medium:
    medium = Medium(
        id=medium_id,
        release_id=release.id,
        release=release,
        position=position,
        name="",
        format_id=fmt.id,
        format=fmt,
        track_count=len(lengths),
    )
    for number, length in enumerate(lengths, start=1):
        medium.tracks.append(Track(
            id=medium_id * 100 + number,
            name=f"Track {number}",
            position=number,
            number=str(number),
            length=length,
            medium_id=medium_id,
        ))
    return medium


def _cdtoc(cdtoc_id: int, toc: str) -> CDTOC:
    cdtoc = CDTOC.from_toc(TableOfContents.from_toc(toc))
    cdtoc.id = cdtoc_id
    return cdtoc


@pytest.fixture
def mb_data() -> FakeMusicBrainz:
    data = FakeMusicBrainz()

    cd = MediumFormat(id=1, name="CD", has_discids=True)
    vinyl = MediumFormat(id=7, name='12" Vinyl', has_discids=False)

    artist = Artist(id=1, gid=uuid.uuid4(), name="Pink Floyd", sort_name="Pink Floyd", comment="")
    group = ReleaseGroup(id=1, gid=uuid.uuid4(), name="Wish You Were Here")
    release = Release(
        id=1, gid=RELEASE_GID, name="Wish You Were Here", comment="",
        artist_id=artist.id, artist=artist, release_group=group,
    )
    data.artists[artist.id] = artist
    data.releases[release.id] = release

    for medium in (
        _medium(1, release, 1, cd, [255000, 257000]),
        _medium(2, release, 2, vinyl, [255000, 257000]),
        _medium(3, release, 3, cd, [None, None]),
    ):
        data.mediums[medium.id] = medium

    single = _cdtoc(10, SINGLE_TOC)
    data.cdtocs[single.discid] = single
    attached = MediumCDTOC(
        id=100, medium_id=1, medium=data.mediums[1], cdtoc_id=single.id, cdtoc=single, edits_pending=0
    )
    data.medium_cdtocs[attached.id] = attached

    stub_toc = TableOfContents.from_toc(STUB_TOC)
    stub = CDStub(id=7, title="Untitled Demo", artist="Unknown Artist", barcode=None, comment=None)
    stub.toc = CDStubTOC(
        id=7,
        release_id=stub.id,
        discid=stub_toc.discid,
        track_count=stub_toc.track_count,
        leadout_offset=stub_toc.leadout_offset,
        track_offset=list(stub_toc.track_offsets),
    )
    for n in range(1, 4):
        stub.tracks.append(CDStubTrack(id=70 + n, release_id=stub.id, title=f"Demo {n}", sequence=n))
    data.cdstubs[stub_toc.discid] = stub

    return data


@pytest.fixture
def repos(mb_data: FakeMusicBrainz) -> Repositories:
    return mb_data.build_repositories()


@pytest.fixture
def edit_service() -> FakeEditService:
    return FakeEditService()


@pytest.fixture
def editor() -> Editor:
    return Editor(id=1, name="tester", email="tester@example.com",
                  password=get_password_hash(EDITOR_PASSWORD), privs=0, deleted=False)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def current_editor(editor: Editor) -> dict:
    """Who the API sees as logged in; set "editor" to None for anonymous requests."""
    return {"editor": editor}


@pytest.fixture
def app(repos: Repositories, edit_service: FakeEditService, current_editor: dict) -> FastAPI:
    """The disc ID routers with storage and login swapped for the fakes above."""
    app = FastAPI()
    app.include_router(cdtoc.router, prefix="/api")
    app.include_router(releases.router, prefix="/api")

    async def override_repositories():
        return repos

    async def override_edit_service():
        return edit_service

    async def override_editor():
        return current_editor["editor"]

    app.dependency_overrides[get_repositories] = override_repositories
    app.dependency_overrides[get_edit_service] = override_edit_service
    app.dependency_overrides[get_current_editor_optional] = override_editor
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
