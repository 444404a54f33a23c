import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import Depends

from mbserver.core.config import settings
from mbserver.core.exceptions import (
    DuplicateAttachment,
    EditNoteRequired,
    IneligibleMedium,
    InvalidParameter,
    InvalidTocFormat,
    MediumNotFound,
    MissingParameter,
    NotFoundException,
    TrackCountMismatch,
    UnauthorizedError,
)
from mbserver.models.edit import EditType
from mbserver.models.registry import Editor, Medium, MediumCDTOC, Release
from mbserver.schemas.artist import ArtistResponse
from mbserver.schemas.cdtoc import (
    AttachArtistReleasesPage,
    AttachConfirmPage,
    AttachFilterArtistPage,
    AttachFilterReleasePage,
    CDStubResponse,
    CDTOCPage,
    CDTOCResponse,
    EditForm,
    LookupPage,
    MediumCDTOCResponse,
    MoveSearchPage,
    RemoveConfirmPage,
    SetDurationsPage,
)
from mbserver.schemas.medium import MediumWithRelease, MediumWithTracks, ReleaseWithMediums
from mbserver.schemas.pagination import Page
from mbserver.schemas.release import ReleaseSummary
from mbserver.services.discid import TableOfContents
from mbserver.services.edit_service import EditService, get_edit_service
from mbserver.services.repositories import Repositories, get_repositories

logger = logging.getLogger(__name__)

# Query parameters of the two search forms on the lookup pages
ARTIST_FILTER_PARAM = "filter-artist.query"
RELEASE_FILTER_PARAM = "filter-release.query"

# Row ids are int4 columns
MAX_ROW_ID = 2**31 - 1
_ROW_ID = re.compile(r"[0-9]+")


@dataclass
class EditCreated:
    """Outcome of a successful edit submission; the caller redirects."""
    edit_id: int
    redirect_to: str


def release_discids_url(release: Release) -> str:
    return f"/api/release/{release.gid}/discids"


def cdtoc_url(discid: str) -> str:
    return f"/api/cdtoc/{discid}"


def _row_id(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = str(value).strip()
    if not _ROW_ID.fullmatch(value):
        return None
    row_id = int(value)
    return row_id if row_id <= MAX_ROW_ID else None


def parse_id(value: Optional[str], parameter: str) -> int:
    """Ids arrive as query strings; only plain ASCII digits within the int4 range are accepted."""
    row_id = _row_id(value)
    if row_id is None:
        raise InvalidParameter(parameter)
    return row_id


def _medium_summary(medium: Medium) -> Dict[str, Any]:
    return {
        "id": medium.id,
        "position": medium.position,
        "name": medium.name,
        "track_count": medium.track_count,
        "release": _release_summary(medium.release),
    }


def _release_summary(release: Release) -> Dict[str, Any]:
    return {"id": release.id, "gid": str(release.gid), "name": release.name}


def _cdtoc_summary(toc: TableOfContents, cdtoc_id: Optional[int] = None) -> Dict[str, Any]:
    return {"id": cdtoc_id, "discid": toc.discid, "toc": toc.to_toc()}


class CDTOCWorkflow:
    """
    Attach, move and remove disc IDs and set track lengths from them.

    Every operation validates its input completely before an edit is entered;
    errors are raised as 4xx HTTP exceptions. Read-only branches return page
    payloads, submissions return EditCreated.
    """
    def __init__(self, repos: Repositories, edits: EditService, page_size: int = 25):
        self.repos = repos
        self.edits = edits
        self.page_size = page_size

    def _page_bounds(self, page: int) -> tuple[int, int]:
        page = max(1, page)
        return self.page_size, (page - 1) * self.page_size

    def _page(self, schema, items, total: int, page: int) -> Page:
        return Page[schema](
            page=max(1, page),
            per_page=self.page_size,
            total=total,
            items=[schema.model_validate(item) for item in items],
        )

    # --- Show ---

    async def show(self, discid: str) -> CDTOCPage:
        cdtoc = await self.repos.cdtocs.get_by_discid(discid)
        if cdtoc is None:
            raise NotFoundException("CDTOC", discid)
        medium_cdtocs = await self.repos.medium_cdtocs.find_by_discid(discid)
        return CDTOCPage(
            cdtoc=CDTOCResponse.model_validate(cdtoc),
            medium_cdtocs=[MediumCDTOCResponse.model_validate(mc) for mc in medium_cdtocs],
        )

    # --- Attach ---

    async def _load_attach_target(self, toc: TableOfContents, medium_param: str) -> Medium:
        medium_id = parse_id(medium_param, "medium")
        if await self.repos.medium_cdtocs.medium_has_cdtoc(medium_id, toc.discid):
            raise DuplicateAttachment()
        medium = await self.repos.mediums.get_by_id(medium_id)
        if medium is None:
            raise MediumNotFound()
        if not medium.may_have_discids:
            raise IneligibleMedium()
        return medium

    async def attach(
        self,
        toc_param: Optional[str],
        params: Mapping[str, str],
        editor: Optional[Editor],
        page: int = 1,
    ):
        """
        The attach page. The first identifying parameter present decides what
        is shown: a medium confirmation, an artist's releases, artist or
        release search results, or the lookup page for the disc ID.
        """
        toc = TableOfContents.from_toc(toc_param)
        cdtoc = CDTOCResponse.model_validate(toc)

        if params.get("medium"):
            if editor is None:
                raise UnauthorizedError("You need to be logged in to attach a disc ID")
            medium = await self._load_attach_target(toc, params["medium"])
            return AttachConfirmPage(cdtoc=cdtoc, medium=MediumWithRelease.model_validate(medium))

        if params.get("artist"):
            artist_id = parse_id(params["artist"], "artist")
            artist = await self.repos.artists.get_by_id(artist_id)
            limit, offset = self._page_bounds(page)
            releases, total = await self.repos.releases.find_for_cdtoc(artist_id, toc.track_count, limit, offset)
            return AttachArtistReleasesPage(
                cdtoc=cdtoc,
                artist=ArtistResponse.model_validate(artist) if artist else None,
                releases=self._page(ReleaseWithMediums, releases, total, page),
            )

        artist_query = (params.get(ARTIST_FILTER_PARAM) or "").strip()
        if artist_query:
            limit, offset = self._page_bounds(page)
            artists, total = await self.repos.search.search_artists(artist_query, limit, offset)
            return AttachFilterArtistPage(cdtoc=cdtoc, artists=self._page(ArtistResponse, artists, total, page))

        release_query = (params.get(RELEASE_FILTER_PARAM) or "").strip()
        if release_query:
            limit, offset = self._page_bounds(page)
            releases, total = await self.repos.search.search_releases(
                release_query, limit, offset, track_count=toc.track_count
            )
            releases = sorted(
                releases,
                key=lambda r: str(r.release_group.gid) if r.release_group else ""
            )
            return AttachFilterReleasePage(cdtoc=cdtoc, results=self._page(ReleaseWithMediums, releases, total, page))

        return await self._lookup(toc, cdtoc, params)

    async def _lookup(self, toc: TableOfContents, cdtoc: CDTOCResponse, params: Mapping[str, str]) -> LookupPage:
        lookup = LookupPage(
            cdtoc=cdtoc,
            artist_query=params.get("artist-name") or None,
            release_query=params.get("release-name") or None,
        )
        cdstub = await self.repos.cdstubs.get_by_discid(toc.discid)
        if cdstub:
            cdstub.update_track_lengths()
            lookup.artist_query = lookup.artist_query or cdstub.artist
            lookup.release_query = lookup.release_query or cdstub.title
            lookup.cdstub = CDStubResponse.model_validate(cdstub)
            lookup.possible_mediums = [
                MediumWithRelease.model_validate(m) for m in await self.repos.mediums.find_for_cdstub(cdstub)
            ]

        lookup.medium_cdtocs = [
            MediumCDTOCResponse.model_validate(mc)
            for mc in await self.repos.medium_cdtocs.find_by_discid(toc.discid)
        ]
        return lookup

    async def submit_attach(
        self,
        toc_param: Optional[str],
        medium_param: Optional[str],
        editor: Optional[Editor],
        form: EditForm,
    ) -> EditCreated:
        toc = TableOfContents.from_toc(toc_param)
        if editor is None:
            raise UnauthorizedError("You need to be logged in to attach a disc ID")
        if not medium_param:
            raise MissingParameter()
        medium = await self._load_attach_target(toc, medium_param)

        edit = await self.edits.create_edit(
            EditType.ADD_DISCID,
            editor,
            {
                "cdtoc": toc.to_toc(),
                "discid": toc.discid,
                "medium_id": medium.id,
                "medium_position": medium.position,
                "release": _release_summary(medium.release),
            },
            edit_note=form.edit_note,
            make_votable=form.make_votable,
        )
        return EditCreated(edit_id=edit.id, redirect_to=release_discids_url(medium.release))

    # --- Move ---

    async def _load_medium_cdtoc(self, medium_cdtoc_param: Optional[str]) -> MediumCDTOC:
        medium_cdtoc_id = _row_id(medium_cdtoc_param)
        if medium_cdtoc_id is None:
            raise InvalidTocFormat()
        medium_cdtoc = await self.repos.medium_cdtocs.get_by_id(medium_cdtoc_id)
        if medium_cdtoc is None:
            raise InvalidTocFormat()
        return medium_cdtoc

    async def _load_move_target(self, medium_cdtoc: MediumCDTOC, medium_param: str) -> Medium:
        medium_id = parse_id(medium_param, "medium")
        medium = await self.repos.mediums.get_by_id(medium_id)
        if medium is None:
            raise MediumNotFound()
        if not medium.may_have_discids:
            raise IneligibleMedium()
        if await self.repos.medium_cdtocs.medium_has_cdtoc(medium.id, medium_cdtoc.cdtoc.discid):
            raise DuplicateAttachment()
        if medium.track_count != medium_cdtoc.cdtoc.track_count:
            # Not enforced, voters see the mismatch on the edit
            logger.warning(
                f"Moving disc ID {medium_cdtoc.cdtoc.discid} ({medium_cdtoc.cdtoc.track_count} tracks) "
                f"to medium {medium.id} with {medium.track_count} tracks"
            )
        return medium

    async def move(self, medium_cdtoc_param: Optional[str], params: Mapping[str, str], page: int = 1):
        medium_cdtoc = await self._load_medium_cdtoc(medium_cdtoc_param)
        cdtoc = CDTOCResponse.model_validate(medium_cdtoc.cdtoc)
        current = MediumCDTOCResponse.model_validate(medium_cdtoc)

        if params.get("medium"):
            medium = await self._load_move_target(medium_cdtoc, params["medium"])
            return AttachConfirmPage(
                cdtoc=cdtoc,
                medium=MediumWithRelease.model_validate(medium),
                medium_cdtoc=current,
            )

        search = MoveSearchPage(cdtoc=cdtoc, medium_cdtoc=current)
        release_query = (params.get(RELEASE_FILTER_PARAM) or "").strip()
        if release_query:
            limit, offset = self._page_bounds(page)
            releases, total = await self.repos.search.search_releases(
                release_query, limit, offset, track_count=medium_cdtoc.cdtoc.track_count
            )
            results = self._page(ReleaseWithMediums, releases, total, page)
            for release in results.items:
                release.mediums = [m for m in release.mediums if m.may_have_discids]
            search.results = results
        return search

    async def submit_move(
        self,
        medium_cdtoc_param: Optional[str],
        medium_param: Optional[str],
        editor: Editor,
        form: EditForm,
    ) -> EditCreated:
        medium_cdtoc = await self._load_medium_cdtoc(medium_cdtoc_param)
        if not medium_param:
            raise MissingParameter()
        medium = await self._load_move_target(medium_cdtoc, medium_param)

        edit = await self.edits.create_edit(
            EditType.MOVE_DISCID,
            editor,
            {
                "medium_cdtoc": {
                    "id": medium_cdtoc.id,
                    "cdtoc": _cdtoc_summary(medium_cdtoc.cdtoc.toc, medium_cdtoc.cdtoc.id),
                },
                "old_medium": _medium_summary(medium_cdtoc.medium),
                "new_medium": _medium_summary(medium),
            },
            edit_note=form.edit_note,
            make_votable=form.make_votable,
        )
        return EditCreated(edit_id=edit.id, redirect_to=release_discids_url(medium.release))

    # --- Remove ---

    async def _load_removal(self, cdtoc_param: Optional[str], medium_param: Optional[str]):
        if not medium_param:
            raise MissingParameter()
        if not cdtoc_param:
            raise MissingParameter("Please provide a CD TOC ID")
        medium_id = parse_id(medium_param, "medium")
        cdtoc_id = parse_id(cdtoc_param, "CD TOC")

        medium = await self.repos.mediums.get_by_id(medium_id)
        if medium is None:
            raise MediumNotFound()
        medium_cdtoc = await self.repos.medium_cdtocs.get_by_medium_cdtoc(medium_id, cdtoc_id)
        if medium_cdtoc is None:
            raise NotFoundException("Medium CD TOC", f"{medium_id}/{cdtoc_id}")
        return medium, medium_cdtoc

    async def remove(self, cdtoc_param: Optional[str], medium_param: Optional[str]) -> RemoveConfirmPage:
        medium, medium_cdtoc = await self._load_removal(cdtoc_param, medium_param)
        return RemoveConfirmPage(
            medium_cdtoc=MediumCDTOCResponse.model_validate(medium_cdtoc),
            medium=MediumWithRelease.model_validate(medium),
            release=ReleaseSummary.model_validate(medium.release),
        )

    async def submit_remove(
        self,
        cdtoc_param: Optional[str],
        medium_param: Optional[str],
        editor: Editor,
        form: EditForm,
    ) -> EditCreated:
        medium, medium_cdtoc = await self._load_removal(cdtoc_param, medium_param)
        if not form.edit_note or not form.edit_note.strip():
            raise EditNoteRequired()

        edit = await self.edits.create_edit(
            EditType.REMOVE_DISCID,
            editor,
            {
                "medium_cdtoc_id": medium_cdtoc.id,
                "medium": _medium_summary(medium),
                "cdtoc": _cdtoc_summary(medium_cdtoc.cdtoc.toc, medium_cdtoc.cdtoc.id),
            },
            edit_note=form.edit_note,
            make_votable=form.make_votable,
        )
        return EditCreated(edit_id=edit.id, redirect_to=release_discids_url(medium.release))

    # --- Set track lengths ---

    async def _load_durations(self, discid: str, medium_param: Optional[str]):
        cdtoc = await self.repos.cdtocs.get_by_discid(discid)
        if cdtoc is None:
            raise NotFoundException("CDTOC", discid)
        if not medium_param:
            raise MissingParameter()
        medium = await self.repos.mediums.get_by_id(parse_id(medium_param, "medium"))
        if medium is None:
            raise MediumNotFound()
        if medium.track_count != cdtoc.track_count:
            raise TrackCountMismatch(medium.track_count, cdtoc.track_count)
        return cdtoc, medium

    async def set_durations(self, discid: str, medium_param: Optional[str]) -> SetDurationsPage:
        cdtoc, medium = await self._load_durations(discid, medium_param)
        return SetDurationsPage(
            cdtoc=CDTOCResponse.model_validate(cdtoc),
            medium=MediumWithTracks.model_validate(medium),
            release=ReleaseSummary.model_validate(medium.release),
            old_lengths=[track.length for track in medium.tracks],
            new_lengths=cdtoc.toc.track_lengths,
        )

    async def submit_set_durations(
        self,
        discid: str,
        medium_param: Optional[str],
        editor: Editor,
        form: EditForm,
    ) -> EditCreated:
        cdtoc, medium = await self._load_durations(discid, medium_param)

        edit = await self.edits.create_edit(
            EditType.SET_TRACK_LENGTHS,
            editor,
            {
                "medium_id": medium.id,
                "cdtoc_id": cdtoc.id,
                "release": _release_summary(medium.release),
                "length": {
                    "old": [track.length for track in medium.tracks],
                    "new": cdtoc.toc.track_lengths,
                },
            },
            edit_note=form.edit_note,
            make_votable=form.make_votable,
        )
        return EditCreated(edit_id=edit.id, redirect_to=cdtoc_url(cdtoc.discid))


# Dependency
async def get_cdtoc_workflow(
    repos: Repositories = Depends(get_repositories),
    edits: EditService = Depends(get_edit_service)
) -> CDTOCWorkflow:
    return CDTOCWorkflow(repos, edits, page_size=settings.SEARCH_PAGE_SIZE)
