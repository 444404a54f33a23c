"""
Static configuration of the database export: which tables are dumped, how
they are grouped into bundles, and the license each bundle carries.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# --- Licenses ---
LICENSE_PUBLIC_DOMAIN = "PublicDomain"
LICENSE_SHARE_ALIKE = "CCShareAlike"

# Ordered from least to most restrictive
LICENSE_RANK = {None: 0, LICENSE_PUBLIC_DOMAIN: 1, LICENSE_SHARE_ALIKE: 2}

LICENSE_TEXT = {
    LICENSE_PUBLIC_DOMAIN: (
        "The data in this archive is licensed under the Creative Commons CC0 1.0\n"
        "Universal Public Domain Dedication.\n"
        "https://creativecommons.org/publicdomain/zero/1.0/\n"
    ),
    LICENSE_SHARE_ALIKE: (
        "The data in this archive is licensed under the Creative Commons\n"
        "Attribution-NonCommercial-ShareAlike 3.0 license.\n"
        "https://creativecommons.org/licenses/by-nc-sa/3.0/\n"
    ),
}

README_TEXT = (
    "The files in the mbdump/ directory are PostgreSQL COPY text format dumps of\n"
    "the MusicBrainz database tables of the same name. TIMESTAMP records when the\n"
    "export was taken, SCHEMA_SEQUENCE the database schema version and\n"
    "REPLICATION_SEQUENCE the replication packet the data is consistent with.\n"
)

# --- Replication ---
REPLICATION_CONTROL_TABLE = "replication_control"
REPLICATION_TABLES = ("dbmirror_pending", "dbmirror_pendingdata")

# Derived from the editor table by a temporary view with private columns blanked
SANITISED_EDITOR_TABLE = "editor_sanitised"


@dataclass(frozen=True)
class TableGroup:
    name: str
    archive_name: str
    tables: Tuple[str, ...]
    license: Optional[str]

    @property
    def is_private(self) -> bool:
        return self.name == "private"


TABLE_GROUPS: List[TableGroup] = [
    TableGroup(
        "core",
        "mbdump.tar.bz2",
        (
            "artist",
            "cdtoc",
            "medium",
            "medium_cdtoc",
            "medium_format",
            "recording",
            "release",
            "release_group",
            REPLICATION_CONTROL_TABLE,
            "track",
        ),
        LICENSE_PUBLIC_DOMAIN,
    ),
    TableGroup("derived", "mbdump-derived.tar.bz2", ("release_group_meta",), LICENSE_SHARE_ALIKE),
    TableGroup("stats", "mbdump-stats.tar.bz2", ("statistics.statistic",), LICENSE_SHARE_ALIKE),
    TableGroup("editor", "mbdump-editor.tar.bz2", (SANITISED_EDITOR_TABLE,), LICENSE_SHARE_ALIKE),
    TableGroup("edit", "mbdump-edit.tar.bz2", ("edit", "edit_data", "edit_note"), LICENSE_SHARE_ALIKE),
    TableGroup("private", "mbdump-private.tar.bz2", ("editor_preference",), None),
    TableGroup("cdstubs", "mbdump-cdstubs.tar.bz2", ("cdtoc_raw", "release_raw", "track_raw"), LICENSE_SHARE_ALIKE),
    TableGroup(
        "cover-art-archive",
        "mbdump-cover-art-archive.tar.bz2",
        ("cover_art_archive.art_type", "cover_art_archive.cover_art"),
        LICENSE_SHARE_ALIKE,
    ),
    TableGroup("wikidocs", "mbdump-wikidocs.tar.bz2", ("wikidocs.wikidocs_index",), LICENSE_SHARE_ALIKE),
    TableGroup(
        "documentation",
        "mbdump-documentation.tar.bz2",
        ("documentation.link_type_documentation",),
        LICENSE_SHARE_ALIKE,
    ),
]

# Everything a full export dumps, in dump order
FULL_EXPORT_TABLES: List[str] = [table for group in TABLE_GROUPS for table in group.tables]

# Schema tables that are deliberately never exported
IGNORED_TABLES = frozenset({
    "editor",  # exported through the sanitised view only
})

_GROUP_BY_TABLE: Dict[str, TableGroup] = {
    table: group for group in TABLE_GROUPS for table in group.tables
}


def group_for_table(table: str) -> Optional[TableGroup]:
    """The bundle a table belongs to, accepting "musicbrainz."-qualified names."""
    if table.startswith("musicbrainz."):
        table = table[len("musicbrainz."):]
    return _GROUP_BY_TABLE.get(table)


def most_restrictive_license(tables) -> str:
    """
    License for a set of tables: the strictest license among their groups.
    Unknown tables count as share-alike; the result is never None.
    """
    license = LICENSE_PUBLIC_DOMAIN
    for table in tables:
        group = group_for_table(table)
        candidate = group.license if group and group.license else LICENSE_SHARE_ALIKE
        if LICENSE_RANK[candidate] > LICENSE_RANK[license]:
            license = candidate
    return license
