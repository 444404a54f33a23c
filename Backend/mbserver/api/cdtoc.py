import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from mbserver.core.security import deny_when_readonly, get_current_editor, get_current_editor_optional
from mbserver.models.registry import Editor
from mbserver.schemas.cdtoc import CDTOCPage, EditForm, RemoveConfirmPage, SetDurationsPage
from mbserver.services.cdtoc_workflow import CDTOCWorkflow, EditCreated, get_cdtoc_workflow

logger = logging.getLogger(__name__)

router = APIRouter()

# A disc ID missing its trailing "-" padding
_UNDASHED_DISCID = re.compile(r"\A[A-Za-z0-9._]{27}\Z")


def _redirect(result: EditCreated) -> RedirectResponse:
    logger.info(f"Edit #{result.edit_id} created, redirecting to {result.redirect_to}")
    return RedirectResponse(url=result.redirect_to, status_code=status.HTTP_303_SEE_OTHER)


def _dashed(request: Request, discid: str, status_code: int) -> Optional[RedirectResponse]:
    """Redirect a disc ID missing its padding to the same action on the dashed one."""
    if not _UNDASHED_DISCID.match(discid):
        return None
    url = request.url.path.replace(f"/cdtoc/{discid}", f"/cdtoc/{discid}-", 1)
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return RedirectResponse(url=url, status_code=status_code)


# Static routes first
@router.get("/cdtoc/attach", response_model=None, dependencies=[Depends(deny_when_readonly)])
async def attach_disc_id(
    request: Request,
    toc: Optional[str] = None,
    page: int = 1,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Optional[Editor] = Depends(get_current_editor_optional)
):
    """Find a medium for a disc ID: confirmation, candidate releases or lookup page"""
    return await workflow.attach(toc, request.query_params, editor, page=page)


@router.post("/cdtoc/attach", dependencies=[Depends(deny_when_readonly)])
async def submit_attach_disc_id(
    toc: Optional[str] = None,
    medium: Optional[str] = None,
    form: Optional[EditForm] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Optional[Editor] = Depends(get_current_editor_optional)
) -> RedirectResponse:
    """Enter an "add disc ID" edit"""
    result = await workflow.submit_attach(toc, medium, editor, form or EditForm())
    return _redirect(result)


@router.get("/cdtoc/move", response_model=None, dependencies=[Depends(deny_when_readonly)])
async def move_disc_id(
    request: Request,
    toc: Optional[str] = None,
    page: int = 1,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
):
    """Confirm a move to the given medium, or search for a new medium"""
    return await workflow.move(toc, request.query_params, page=page)


@router.post("/cdtoc/move", dependencies=[Depends(deny_when_readonly)])
async def submit_move_disc_id(
    toc: Optional[str] = None,
    medium: Optional[str] = None,
    form: Optional[EditForm] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
) -> RedirectResponse:
    """Enter a "move disc ID" edit"""
    result = await workflow.submit_move(toc, medium, editor, form or EditForm())
    return _redirect(result)


@router.get("/cdtoc/remove", response_model=RemoveConfirmPage, dependencies=[Depends(deny_when_readonly)])
async def remove_disc_id(
    cdtoc_id: Optional[str] = None,
    medium_id: Optional[str] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
) -> RemoveConfirmPage:
    return await workflow.remove(cdtoc_id, medium_id)


@router.post("/cdtoc/remove", dependencies=[Depends(deny_when_readonly)])
async def submit_remove_disc_id(
    cdtoc_id: Optional[str] = None,
    medium_id: Optional[str] = None,
    form: Optional[EditForm] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
) -> RedirectResponse:
    """Enter a "remove disc ID" edit. An edit note is mandatory."""
    result = await workflow.submit_remove(cdtoc_id, medium_id, editor, form or EditForm())
    return _redirect(result)


# Dynamic routes after static ones
@router.get("/cdtoc/{discid}", response_model=CDTOCPage)
async def show_disc_id(request: Request, discid: str, workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow)):
    """A disc ID and every medium it is attached to"""
    redirect = _dashed(request, discid, status.HTTP_301_MOVED_PERMANENTLY)
    if redirect:
        return redirect
    return await workflow.show(discid)


@router.get("/cdtoc/{discid}/set-durations", response_model=SetDurationsPage, dependencies=[Depends(deny_when_readonly)])
async def set_durations(
    request: Request,
    discid: str,
    medium: Optional[str] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
) -> SetDurationsPage:
    """Preview the track lengths a disc ID would set on a medium"""
    redirect = _dashed(request, discid, status.HTTP_301_MOVED_PERMANENTLY)
    if redirect:
        return redirect
    return await workflow.set_durations(discid, medium)


@router.post("/cdtoc/{discid}/set-durations", dependencies=[Depends(deny_when_readonly)])
async def submit_set_durations(
    request: Request,
    discid: str,
    medium: Optional[str] = None,
    form: Optional[EditForm] = None,
    workflow: CDTOCWorkflow = Depends(get_cdtoc_workflow),
    editor: Editor = Depends(get_current_editor)
) -> RedirectResponse:
    """Enter a "set track lengths" edit"""
    # 308 keeps the method and the form body
    redirect = _dashed(request, discid, status.HTTP_308_PERMANENT_REDIRECT)
    if redirect:
        return redirect
    result = await workflow.submit_set_durations(discid, medium, editor, form or EditForm())
    return _redirect(result)
