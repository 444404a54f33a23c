"""
test_export_tables.py - table groups and license resolution
"""

from mbserver.services.export_tables import (
    FULL_EXPORT_TABLES,
    LICENSE_PUBLIC_DOMAIN,
    LICENSE_SHARE_ALIKE,
    REPLICATION_TABLES,
    TABLE_GROUPS,
    group_for_table,
    most_restrictive_license,
)


def test_every_table_exported_once():
    assert len(FULL_EXPORT_TABLES) == len(set(FULL_EXPORT_TABLES))
    assert "editor" not in FULL_EXPORT_TABLES
    assert not set(REPLICATION_TABLES) & set(FULL_EXPORT_TABLES)


def test_archive_names_unique():
    names = [group.archive_name for group in TABLE_GROUPS]
    assert len(names) == len(set(names))


def test_only_private_group_is_unlicensed():
    unlicensed = [group.name for group in TABLE_GROUPS if group.license is None]
    assert unlicensed == ["private"]
    assert group_for_table("editor_preference").is_private


def test_group_for_qualified_name():
    assert group_for_table("musicbrainz.artist").name == "core"
    assert group_for_table("statistics.statistic").name == "stats"
    assert group_for_table("no_such_table") is None


class TestMostRestrictiveLicense:

    def test_core_only(self):
        assert most_restrictive_license({"musicbrainz.artist", "musicbrainz.track"}) == LICENSE_PUBLIC_DOMAIN

    def test_mixed(self):
        assert most_restrictive_license({"musicbrainz.artist", "musicbrainz.edit"}) == LICENSE_SHARE_ALIKE

    def test_unknown_and_private_tables_are_share_alike(self):
        assert most_restrictive_license({"something_new"}) == LICENSE_SHARE_ALIKE
        assert most_restrictive_license({"editor_preference"}) == LICENSE_SHARE_ALIKE

    def test_empty(self):
        assert most_restrictive_license(set()) == LICENSE_PUBLIC_DOMAIN
