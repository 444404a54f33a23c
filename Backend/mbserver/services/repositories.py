from dataclasses import dataclass
from typing import List, Optional, Tuple
import uuid

from fastapi import Depends
from sqlalchemy import func, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from mbserver.models.registry import (
    Artist,
    CDStub,
    CDStubTOC,
    CDTOC,
    Medium,
    MediumCDTOC,
    MediumFormat,
    Release,
    ReleaseGroup,
    Track,
)
from mbserver.services.database import get_db


def _release_details():
    """Loader options for everything a release summary shows."""
    return [
        selectinload(Release.artist),
        selectinload(Release.release_group).selectinload(ReleaseGroup.meta),
    ]


def _release_with_tracks():
    return [
        *_release_details(),
        selectinload(Release.mediums).selectinload(Medium.format),
        selectinload(Release.mediums).selectinload(Medium.tracks).selectinload(Track.recording),
    ]


def _medium_with_release():
    return [
        selectinload(Medium.format),
        selectinload(Medium.release).selectinload(Release.artist),
        selectinload(Medium.release).selectinload(Release.release_group).selectinload(ReleaseGroup.meta),
    ]


def _eligible_mediums(track_count: int):
    """Release ids having a medium with this track count that may carry disc IDs."""
    return (
        select(Medium.release_id)
        .outerjoin(MediumFormat, Medium.format_id == MediumFormat.id)
        .where(Medium.track_count == track_count)
        .where(or_(Medium.format_id.is_(None), MediumFormat.has_discids.is_(True)))
    )


async def _paged(db: AsyncSession, stmt, limit: int, offset: int) -> Tuple[list, int]:
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one()
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().unique().all()), total


class ArtistRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id(self, artist_id: int) -> Optional[Artist]:
        result = await self.db.execute(select(Artist).where(Artist.id == artist_id))
        return result.scalar_one_or_none()


class ReleaseRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_gid(self, gid: uuid.UUID) -> Optional[Release]:
        """Load a release with its mediums and their attached disc IDs."""
        result = await self.db.execute(
            select(Release).where(Release.gid == gid).options(
                *_release_details(),
                selectinload(Release.mediums).selectinload(Medium.format),
                selectinload(Release.mediums).selectinload(Medium.medium_cdtocs).selectinload(MediumCDTOC.cdtoc),
            )
        )
        return result.scalar_one_or_none()

    async def find_for_cdtoc(self, artist_id: int, track_count: int, limit: int, offset: int) -> Tuple[List[Release], int]:
        """Releases by an artist that have a medium a disc with track_count tracks could belong to."""
        stmt = (
            select(Release)
            .where(Release.artist_id == artist_id)
            .where(Release.id.in_(_eligible_mediums(track_count)))
            .options(*_release_with_tracks())
            .order_by(Release.name, Release.id)
        )
        return await _paged(self.db, stmt, limit, offset)


class MediumRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_id(self, medium_id: int) -> Optional[Medium]:
        """Load a medium with its format, release and track list."""
        result = await self.db.execute(
            select(Medium).where(Medium.id == medium_id).options(
                *_medium_with_release(),
                selectinload(Medium.tracks).selectinload(Track.recording),
            )
        )
        return result.scalar_one_or_none()

    async def find_for_cdstub(self, cdstub: CDStub, limit: int = 10) -> List[Medium]:
        """Mediums a CD stub could be merged into, matched on title and track count."""
        stmt = (
            select(Medium)
            .join(Release, Medium.release_id == Release.id)
            .outerjoin(MediumFormat, Medium.format_id == MediumFormat.id)
            .where(Medium.track_count == cdstub.track_count)
            .where(Release.name.ilike(cdstub.title))
            .where(or_(Medium.format_id.is_(None), MediumFormat.has_discids.is_(True)))
            .options(*_medium_with_release())
            .order_by(Release.name, Medium.position)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class CDTOCRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_discid(self, discid: str) -> Optional[CDTOC]:
        result = await self.db.execute(select(CDTOC).where(CDTOC.discid == discid))
        return result.scalar_one_or_none()


class MediumCDTOCRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    def _query(self):
        return select(MediumCDTOC).options(
            selectinload(MediumCDTOC.cdtoc),
            selectinload(MediumCDTOC.medium).selectinload(Medium.format),
            selectinload(MediumCDTOC.medium).selectinload(Medium.release).selectinload(Release.artist),
            selectinload(MediumCDTOC.medium).selectinload(Medium.release)
            .selectinload(Release.release_group).selectinload(ReleaseGroup.meta),
        )

    async def get_by_id(self, medium_cdtoc_id: int) -> Optional[MediumCDTOC]:
        result = await self.db.execute(self._query().where(MediumCDTOC.id == medium_cdtoc_id))
        return result.scalar_one_or_none()

    async def get_by_medium_cdtoc(self, medium_id: int, cdtoc_id: int) -> Optional[MediumCDTOC]:
        result = await self.db.execute(
            self._query().where(MediumCDTOC.medium_id == medium_id, MediumCDTOC.cdtoc_id == cdtoc_id)
        )
        return result.scalar_one_or_none()

    async def find_by_discid(self, discid: str) -> List[MediumCDTOC]:
        result = await self.db.execute(
            self._query()
            .join(CDTOC, MediumCDTOC.cdtoc_id == CDTOC.id)
            .where(CDTOC.discid == discid)
            .order_by(MediumCDTOC.id)
        )
        return list(result.scalars().all())

    async def medium_has_cdtoc(self, medium_id: int, discid: str) -> bool:
        stmt = select(
            exists()
            .where(MediumCDTOC.cdtoc_id == CDTOC.id)
            .where(MediumCDTOC.medium_id == medium_id)
            .where(CDTOC.discid == discid)
        )
        return bool((await self.db.execute(stmt)).scalar())


class CDStubRepository:
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_by_discid(self, discid: str) -> Optional[CDStub]:
        result = await self.db.execute(
            select(CDStub)
            .join(CDStubTOC, CDStubTOC.release_id == CDStub.id)
            .where(CDStubTOC.discid == discid)
            .options(selectinload(CDStub.toc), selectinload(CDStub.tracks))
        )
        return result.scalars().first()


class SearchRepository:
    """Name searches used by the disc ID attach and move pages."""
    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def search_artists(self, query: str, limit: int, offset: int) -> Tuple[List[Artist], int]:
        stmt = (
            select(Artist)
            .where(or_(Artist.name.ilike(f"%{query}%"), Artist.sort_name.ilike(f"%{query}%")))
            .order_by(Artist.name, Artist.id)
        )
        return await _paged(self.db, stmt, limit, offset)

    async def search_releases(
        self,
        query: str,
        limit: int,
        offset: int,
        track_count: Optional[int] = None
    ) -> Tuple[List[Release], int]:
        stmt = select(Release).where(Release.name.ilike(f"%{query}%"))
        if track_count is not None:
            stmt = stmt.where(
                Release.id.in_(select(Medium.release_id).where(Medium.track_count == track_count))
            )
        stmt = stmt.options(*_release_with_tracks()).order_by(Release.name, Release.id)
        return await _paged(self.db, stmt, limit, offset)


@dataclass
class Repositories:
    artists: ArtistRepository
    releases: ReleaseRepository
    mediums: MediumRepository
    cdtocs: CDTOCRepository
    medium_cdtocs: MediumCDTOCRepository
    cdstubs: CDStubRepository
    search: SearchRepository


async def get_repositories(db: AsyncSession = Depends(get_db)) -> Repositories:
    """Dependency bundling the request-scoped repositories"""
    return Repositories(
        artists=ArtistRepository(db),
        releases=ReleaseRepository(db),
        mediums=MediumRepository(db),
        cdtocs=CDTOCRepository(db),
        medium_cdtocs=MediumCDTOCRepository(db),
        cdstubs=CDStubRepository(db),
        search=SearchRepository(db),
    )
