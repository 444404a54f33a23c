import logging
import uuid

from fastapi import APIRouter, Depends

from mbserver.core.exceptions import NotFoundException
from mbserver.schemas.cdtoc import MediumWithDiscIDs, ReleaseDiscIDsPage
from mbserver.schemas.release import ReleaseSummary
from mbserver.services.repositories import Repositories, get_repositories


logger = logging.getLogger(__name__)


router = APIRouter()

@router.get("/release/{gid}/discids", response_model=ReleaseDiscIDsPage)
async def release_discids(gid: uuid.UUID, repos: Repositories = Depends(get_repositories)) -> ReleaseDiscIDsPage:
    """List a release's mediums with the disc IDs attached to each"""
    release = await repos.releases.get_by_gid(gid)
    if not release:
        logger.warning(f"Release {gid} not found")
        raise NotFoundException("Release", str(gid))
    return ReleaseDiscIDsPage(
        release=ReleaseSummary.model_validate(release),
        mediums=[MediumWithDiscIDs.model_validate(medium) for medium in release.mediums],
    )
