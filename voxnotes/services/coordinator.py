"""Session coordinator: live transcription vs. saved annotation.

The coordinator owns the cursor, which is either empty (new-transcription
mode) or the id of the selected annotation (viewing mode). It consumes
finished recordings and engine output, decides whether ``save`` creates or
updates a record, and derives the view handed to presentation.

Transition table::

    select(None)            -> new transcription; pipeline reset
    select(record)          -> viewing record; pipeline reset
    begin_transcription()   -> new transcription; live output cleared
    save(form)   [viewing]  -> update selected record; stay viewing it
    save(form)   [new]      -> create record from live output; view it
    delete(selected id)     -> new transcription; pipeline reset
    delete(other id)        -> cursor unchanged
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from voxnotes.core.exceptions import IncompleteTranscriptionError
from voxnotes.core.models import (
    AnnotationFormData,
    AnnotationRecord,
    CoordinatorMode,
    FinalizedRecording,
    SessionView,
    TranscriberOutput,
)
from voxnotes.services.storage.store import AnnotationStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionCoordinator:
    """Decision layer between the live transcription and the annotation store.

    Args:
        store: The annotation store (source of truth for the record list).
        on_reset: Signals the capture/transcription pipeline to go blank.
        on_audio: Receives finished recordings to hand to the speech engine.
        clock: Timestamp source for ``createdAt`` / ``updatedAt``.
    """

    def __init__(
        self,
        store: AnnotationStore,
        on_reset: Callable[[], None] | None = None,
        on_audio: Callable[[FinalizedRecording], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._on_reset = on_reset
        self._on_audio = on_audio
        self._clock = clock
        self._selected: AnnotationRecord | None = None
        self._live_output: TranscriberOutput | None = None
        self._annotations: list[AnnotationRecord] = store.get_all()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def mode(self) -> CoordinatorMode:
        if self._selected is None:
            return CoordinatorMode.new_transcription
        return CoordinatorMode.viewing

    @property
    def selected(self) -> AnnotationRecord | None:
        return self._selected

    @property
    def annotations(self) -> list[AnnotationRecord]:
        return list(self._annotations)

    @property
    def live_output(self) -> TranscriberOutput | None:
        return self._live_output

    @property
    def effective_transcription(self) -> TranscriberOutput | None:
        """The selected record's stored transcript, else the live engine output."""
        if self._selected is not None:
            stored = self._selected.transcription
            return TranscriberOutput(is_busy=False, text=stored.text, chunks=stored.chunks)
        return self._live_output

    @property
    def ready_to_save(self) -> bool:
        live_complete = self._live_output is not None and self._live_output.is_complete
        if live_complete:
            return True
        return self._selected is not None and bool(self._selected.transcription.chunks)

    def view(self) -> SessionView:
        """Build the derived view handed to presentation."""
        form = self._selected.form_data() if self._selected is not None else AnnotationFormData()
        return SessionView(
            mode=self.mode,
            selected_id=self._selected.id if self._selected is not None else None,
            effective_transcription=self.effective_transcription,
            ready_to_save=self.ready_to_save,
            is_busy=self._live_output is not None and self._live_output.is_busy,
            form=form,
            annotations=self.annotations,
        )

    # ------------------------------------------------------------------
    # Cursor transitions
    # ------------------------------------------------------------------

    def select_annotation(self, record: AnnotationRecord | None) -> None:
        """Enter viewing mode for *record*, or new-transcription mode for None."""
        self._selected = record
        if record is None:
            logger.debug("Cursor cleared; new transcription")
        else:
            logger.debug("Viewing annotation %s", record.id)
        self._reset_pipeline()

    def select_annotation_by_id(self, annotation_id: str | None) -> AnnotationRecord | None:
        """Select by id; an unknown id leaves the cursor unchanged and returns None."""
        if annotation_id is None:
            self.select_annotation(None)
            return None
        record = self._store.get_by_id(annotation_id)
        if record is None:
            logger.info("Cannot select unknown annotation %s", annotation_id)
            return None
        self.select_annotation(record)
        return record

    def begin_transcription(self) -> None:
        """New audio input starts a fresh transcription, never an edit."""
        if self._selected is not None:
            logger.debug("New input while viewing %s; leaving viewing mode", self._selected.id)
        self._selected = None
        self._live_output = None

    def on_recording_complete(self, recording: FinalizedRecording) -> None:
        """Completion contract of the capture session."""
        self.begin_transcription()
        if self._on_audio is not None:
            self._on_audio(recording)

    def update_transcription(self, output: TranscriberOutput) -> None:
        """Record the engine's latest output (incremental or final)."""
        self._live_output = output

    def refresh(self) -> list[AnnotationRecord]:
        """Re-read the record list from the store."""
        self._annotations = self._store.get_all()
        return self.annotations

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def save(self, form: AnnotationFormData) -> AnnotationRecord:
        """Update the selected record, or create one from the live transcription.

        Raises:
            IncompleteTranscriptionError: Nothing finished to save; the store
                and the cursor are left unchanged.
        """
        now = self._clock()
        if self._selected is not None:
            existing = self._selected
            if not existing.transcription.chunks:
                raise IncompleteTranscriptionError()
            record = existing.model_copy(
                update={
                    "name": form.name,
                    "address": form.address,
                    "phone": form.phone,
                    "notes": form.notes,
                    "updated_at": max(now, existing.created_at),
                }
            )
            logger.info("Updating annotation %s", record.id)
        else:
            live = self._live_output
            if live is None or not live.is_complete:
                raise IncompleteTranscriptionError()
            record = AnnotationRecord(
                id=self._store.generate_id(),
                name=form.name,
                address=form.address,
                phone=form.phone,
                notes=form.notes,
                transcription=live.snapshot(),
                created_at=now,
                updated_at=now,
            )
            logger.info("Creating annotation %s (%d chunks)", record.id, len(record.transcription.chunks))

        self._store.save(record)
        self.refresh()
        # Prefer what the store returns over what was written
        stored = next((r for r in self._annotations if r.id == record.id), None)
        if stored is None:
            logger.warning("Annotation %s not found after save; using the written value", record.id)
            stored = record
        self._selected = stored
        return stored

    def delete(self, annotation_id: str) -> None:
        """Delete a record; deleting the selected record clears the cursor."""
        self._store.delete(annotation_id)
        self.refresh()
        if self._selected is not None and self._selected.id == annotation_id:
            self.select_annotation(None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset_pipeline(self) -> None:
        self._live_output = None
        if self._on_reset is not None:
            self._on_reset()
