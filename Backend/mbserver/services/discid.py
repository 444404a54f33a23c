import base64
import hashlib
import re
from dataclasses import dataclass
from typing import List, Tuple

from mbserver.core.exceptions import InvalidTocFormat

# --- CD table of contents constants ---
SECTORS_PER_SECOND = 75
MAX_TRACKS = 99

_TOC_PATTERN = re.compile(r"\A\d+(?: \d+)*\Z")

# MusicBrainz uses a URL-safe flavour of base64 for disc IDs.
_DISCID_ALPHABET = str.maketrans("+/=", "._-")


def _sectors_to_ms(sectors: int) -> int:
    return int(sectors / SECTORS_PER_SECOND * 1000)


@dataclass(frozen=True)
class TrackDetails:
    number: int
    start_sectors: int
    end_sectors: int

    @property
    def length_sectors(self) -> int:
        return self.end_sectors - self.start_sectors

    @property
    def length_ms(self) -> int:
        return _sectors_to_ms(self.length_sectors)


@dataclass(frozen=True)
class TableOfContents:
    """
    A parsed CD table of contents.

    Values are created from the raw TOC string submitted by a disc ripper,
    "first_track last_track leadout_offset offset_1 ... offset_n", and never
    change afterwards. The disc ID and FreeDB ID are derived from the layout.
    """
    first_track: int
    last_track: int
    leadout_offset: int
    track_offsets: Tuple[int, ...]

    @classmethod
    def from_toc(cls, toc: str | None) -> "TableOfContents":
        """Parse a raw TOC string, raising InvalidTocFormat if it is malformed."""
        if toc is None:
            raise InvalidTocFormat()

        normalized = " ".join(toc.split())
        if not _TOC_PATTERN.match(normalized):
            raise InvalidTocFormat()

        first_track, last_track, leadout_offset, *track_offsets = (int(v) for v in normalized.split(" "))

        if first_track != 1:
            raise InvalidTocFormat()
        if not 1 <= last_track <= MAX_TRACKS:
            raise InvalidTocFormat()
        if len(track_offsets) != last_track - first_track + 1:
            raise InvalidTocFormat()

        previous = 0
        for offset in track_offsets:
            if offset <= previous or offset >= leadout_offset:
                raise InvalidTocFormat()
            previous = offset

        return cls(first_track, last_track, leadout_offset, tuple(track_offsets))

    @classmethod
    def from_offsets(cls, track_count: int, leadout_offset: int, track_offsets: List[int]) -> "TableOfContents":
        """Rebuild the value from stored columns (validated like a submitted TOC)."""
        return cls.from_toc(" ".join(str(v) for v in (1, track_count, leadout_offset, *track_offsets)))

    def to_toc(self) -> str:
        return " ".join(str(v) for v in (self.first_track, self.last_track, self.leadout_offset, *self.track_offsets))

    @property
    def track_count(self) -> int:
        return self.last_track - self.first_track + 1

    @property
    def length(self) -> int:
        """Total disc length in milliseconds."""
        return _sectors_to_ms(self.leadout_offset)

    @property
    def discid(self) -> str:
        sha = hashlib.sha1()
        sha.update(f"{self.first_track:02X}".encode("ascii"))
        sha.update(f"{self.last_track:02X}".encode("ascii"))
        sha.update(f"{self.leadout_offset:08X}".encode("ascii"))
        for index in range(MAX_TRACKS):
            offset = self.track_offsets[index] if index < len(self.track_offsets) else 0
            sha.update(f"{offset:08X}".encode("ascii"))
        return base64.b64encode(sha.digest()).decode("ascii").translate(_DISCID_ALPHABET)

    @property
    def freedb_id(self) -> str:
        def digit_sum(n: int) -> int:
            return sum(int(d) for d in str(n))

        checksum = sum(digit_sum(offset // SECTORS_PER_SECOND) for offset in self.track_offsets)
        total_seconds = self.leadout_offset // SECTORS_PER_SECOND - self.track_offsets[0] // SECTORS_PER_SECOND
        return f"{((checksum % 0xFF) << 24) | (total_seconds << 8) | self.track_count:08x}"

    @property
    def track_details(self) -> List[TrackDetails]:
        ends = list(self.track_offsets[1:]) + [self.leadout_offset]
        return [
            TrackDetails(number=self.first_track + i, start_sectors=start, end_sectors=end)
            for i, (start, end) in enumerate(zip(self.track_offsets, ends))
        ]

    @property
    def track_lengths(self) -> List[int]:
        return [track.length_ms for track in self.track_details]
