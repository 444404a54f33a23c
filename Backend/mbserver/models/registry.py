# Importing this module registers every model on Base.metadata so that
# string relationship targets resolve and create_all() sees all tables.
from mbserver.models.artist import Artist
from mbserver.models.release_group import ReleaseGroup, ReleaseGroupMeta
from mbserver.models.release import Release
from mbserver.models.medium import Medium, MediumFormat
from mbserver.models.track import Track, Recording
from mbserver.models.cdtoc import CDTOC, MediumCDTOC
from mbserver.models.cdstub import CDStub, CDStubTOC, CDStubTrack
from mbserver.models.editor import Editor, EditorPreference
from mbserver.models.edit import Edit, EditData, EditNote
from mbserver.models.replication import ReplicationControl, DbmirrorPending, DbmirrorPendingData
from mbserver.models.statistics import Statistic
from mbserver.models.cover_art import ArtType, CoverArt
from mbserver.models.documentation import WikiDocsIndex, LinkTypeDocumentation

__all__ = [
    "Artist", "ReleaseGroup", "ReleaseGroupMeta", "Release", "Medium", "MediumFormat",
    "Track", "Recording", "CDTOC", "MediumCDTOC", "CDStub", "CDStubTOC", "CDStubTrack",
    "Editor", "EditorPreference", "Edit", "EditData", "EditNote",
    "ReplicationControl", "DbmirrorPending", "DbmirrorPendingData",
    "Statistic", "ArtType", "CoverArt", "WikiDocsIndex", "LinkTypeDocumentation",
]
