"""
Session endpoints: the coordinator's cursor and the live transcription feed.
"""

from fastapi import APIRouter, Depends

from voxnotes.api.deps import get_coordinator
from voxnotes.core.exceptions import AnnotationNotFoundError
from voxnotes.core.models import SelectRequest, SessionView, TranscriberOutput
from voxnotes.services.coordinator import SessionCoordinator

router = APIRouter(prefix="/session", tags=["session"])


@router.get("", response_model=SessionView)
async def get_session_view(coordinator: SessionCoordinator = Depends(get_coordinator)):
    """Return the derived view: effective transcript, ready-to-save, records."""
    return coordinator.view()


@router.post("/select", response_model=SessionView)
async def select_annotation(
    body: SelectRequest,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """Select an annotation for viewing, or ``null`` for a new transcription."""
    if body.id is None:
        coordinator.select_annotation(None)
    elif coordinator.select_annotation_by_id(body.id) is None:
        raise AnnotationNotFoundError(body.id)
    return coordinator.view()


@router.post("/transcription", response_model=SessionView)
async def update_transcription(
    body: TranscriberOutput,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """Receive the speech engine's latest output."""
    coordinator.update_transcription(body)
    return coordinator.view()


@router.post("/new", response_model=SessionView)
async def begin_transcription(coordinator: SessionCoordinator = Depends(get_coordinator)):
    """Mark the start of new audio input (upload or recording)."""
    coordinator.begin_transcription()
    return coordinator.view()
