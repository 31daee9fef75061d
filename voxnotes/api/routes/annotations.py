"""
Annotation REST endpoints.

All endpoints delegate to the ``SessionCoordinator``; no business logic
here. Handlers are ``async def`` so every coordinator call runs on the event
loop thread, one request at a time, as the coordinator expects.
"""

import logging

from fastapi import APIRouter, Depends, Response

from voxnotes.api.deps import get_coordinator
from voxnotes.core.exceptions import AnnotationNotFoundError
from voxnotes.core.models import AnnotationFormData, AnnotationRecord, AnnotationSummary
from voxnotes.core.utils import truncate_text
from voxnotes.services.coordinator import SessionCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/annotations", tags=["annotations"])


def _to_summary(record: AnnotationRecord) -> AnnotationSummary:
    """Convert a record to its list-entry representation."""
    return AnnotationSummary(
        id=record.id,
        display_name=record.name or "Untitled",
        created_at=record.created_at,
        address=record.address,
        phone=record.phone,
        preview=truncate_text(record.transcription.text),
        notes_preview=truncate_text(record.notes, 50),
    )


@router.get("", response_model=list[AnnotationSummary])
async def list_annotations(coordinator: SessionCoordinator = Depends(get_coordinator)):
    """List all saved annotations in stored order."""
    return [_to_summary(r) for r in coordinator.refresh()]


@router.get("/{annotation_id}", response_model=AnnotationRecord)
async def get_annotation(
    annotation_id: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """Return one annotation with its transcript."""
    for record in coordinator.refresh():
        if record.id == annotation_id:
            return record
    raise AnnotationNotFoundError(annotation_id)


@router.post("", response_model=AnnotationRecord)
async def save_annotation(
    body: AnnotationFormData,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """Save the form: update the selected annotation or create a new one."""
    return coordinator.save(body)


@router.delete("/{annotation_id}", status_code=204)
async def delete_annotation(
    annotation_id: str,
    coordinator: SessionCoordinator = Depends(get_coordinator),
):
    """Delete an annotation (idempotent)."""
    coordinator.delete(annotation_id)
    return Response(status_code=204)
