import sys
import os
import asyncio

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'Backend')))

from mbserver.core.config import settings
from mbserver.core.security import get_password_hash
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
    Recording,
    Release,
    ReleaseGroup,
    ReplicationControl,
    Track,
)
from mbserver.services.database import engine
from mbserver.services.discid import TableOfContents
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

# A 6 track album and a 2 track single
ALBUM_TOC = "1 6 194050 150 32177 56552 84000 115900 152270"
SINGLE_TOC = "1 2 38600 150 19350"
STUB_TOC = "1 3 61000 150 20150 41200"


async def create_demo_data():
    # Create async session
    async_session = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        formats = [
            MediumFormat(id=1, name="CD", has_discids=True),
            MediumFormat(id=7, name="12\" Vinyl", has_discids=False),
        ]
        session.add_all(formats)

        editor = Editor(
            name="demo_editor",
            email="editor@example.com",
            password=get_password_hash("mb"),
        )
        session.add(editor)

        artist = Artist(name="Pink Floyd", sort_name="Pink Floyd")
        session.add(artist)
        await session.flush()

        group = ReleaseGroup(name="Wish You Were Here", artist_id=artist.id)
        session.add(group)
        await session.flush()

        release = Release(name="Wish You Were Here", artist=artist, release_group=group)
        session.add(release)
        await session.flush()

        # One CD that can take disc IDs, one vinyl that cannot
        cd = Medium(release_id=release.id, position=1, format_id=1, track_count=6)
        vinyl = Medium(release_id=release.id, position=2, format_id=7, track_count=6)
        session.add_all([cd, vinyl])
        await session.flush()

        album_toc = TableOfContents.from_toc(ALBUM_TOC)
        for medium in (cd, vinyl):
            for number, length in enumerate(album_toc.track_lengths, start=1):
                recording = Recording(name=f"Track {number}", artist_id=artist.id, length=length)
                session.add(recording)
                await session.flush()
                session.add(Track(
                    name=recording.name,
                    position=number,
                    number=str(number),
                    length=None,
                    medium_id=medium.id,
                    recording_id=recording.id,
                ))

        cdtoc = CDTOC.from_toc(album_toc)
        session.add(cdtoc)
        # Not attached anywhere, for trying out the attach flow
        session.add(CDTOC.from_toc(TableOfContents.from_toc(SINGLE_TOC)))
        await session.flush()
        session.add(MediumCDTOC(medium_id=cd.id, cdtoc_id=cdtoc.id))

        stub_toc = TableOfContents.from_toc(STUB_TOC)
        stub = CDStub(title="Untitled Demo", artist="Unknown Artist")
        session.add(stub)
        await session.flush()
        session.add(CDStubTOC(
            release_id=stub.id,
            discid=stub_toc.discid,
            track_count=stub_toc.track_count,
            leadout_offset=stub_toc.leadout_offset,
            track_offset=list(stub_toc.track_offsets),
        ))
        session.add_all([
            CDStubTrack(release_id=stub.id, title=f"Demo {n}", sequence=n)
            for n in range(1, stub_toc.track_count + 1)
        ])

        session.add(ReplicationControl(
            id=1,
            current_schema_sequence=settings.DB_SCHEMA_SEQUENCE,
            current_replication_sequence=None,
        ))

        # Commit all changes
        await session.commit()
        print("✅ Demo data created successfully!")

if __name__ == "__main__":
    asyncio.run(create_demo_data())
