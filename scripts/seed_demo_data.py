#!/usr/bin/env python3
"""
VoxNotes Demo Data Seeder

Writes a handful of transcribed, annotated demo recordings into the
configured annotation store. All demo annotations use the ``[DEMO]`` name
prefix for idempotent management.

Usage:
    python scripts/seed_demo_data.py          # Seed (skip if exists)
    python scripts/seed_demo_data.py --clean  # Delete existing + re-seed
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Ensure project root is on sys.path for ``voxnotes`` imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from voxnotes.core.config import get_settings  # noqa: E402
from voxnotes.core.models import (  # noqa: E402
    AnnotationRecord,
    TranscriptChunk,
    Transcription,
)
from voxnotes.services.storage.medium import create_medium  # noqa: E402
from voxnotes.services.storage.store import AnnotationStore  # noqa: E402

logger = logging.getLogger(__name__)

DEMO_PREFIX = "[DEMO]"

SCENARIOS: list[dict] = [
    {
        "name": "Maria Alvarez",
        "address": "221 Harbor Road, Apt 3",
        "phone": "555-0142",
        "notes": "Prefers morning visits.",
        "segments": [
            "Hi, this is Maria calling about the leaking sink.",
            "It started on Monday and it's getting worse.",
            "Any time before noon works for me.",
        ],
    },
    {
        "name": "Tom Becker",
        "address": "8 Orchard Lane",
        "phone": "555-0178",
        "notes": "",
        "segments": [
            "Tom here, following up on the quote you sent.",
            "We'd like to go ahead with the second option.",
        ],
    },
    {
        "name": "Priya Natarajan",
        "address": "",
        "phone": "555-0110",
        "notes": "Call back after 6pm.",
        "segments": [
            "Hello, I'm looking to book an inspection.",
            "The house is on the east side of town.",
            "Please call me back this evening.",
        ],
    },
]


# ------------------------------------------------------------------
# Building records
# ------------------------------------------------------------------

def _build_transcription(segments: list[str], seconds_per_segment: float = 3.5) -> Transcription:
    """Lay out *segments* back to back; the last chunk is left open-ended."""
    chunks = []
    for i, text in enumerate(segments):
        start = round(i * seconds_per_segment, 2)
        end = None if i == len(segments) - 1 else round(start + seconds_per_segment, 2)
        chunks.append(TranscriptChunk(text=f" {text}", timestamp=(start, end)))
    return Transcription(text=" ".join(segments), chunks=tuple(chunks))


def _build_record(scenario: dict, created_at: datetime) -> AnnotationRecord:
    return AnnotationRecord(
        id=AnnotationStore.generate_id(),
        name=f"{DEMO_PREFIX} {scenario['name']}",
        address=scenario["address"],
        phone=scenario["phone"],
        notes=scenario["notes"],
        transcription=_build_transcription(scenario["segments"]),
        created_at=created_at,
        updated_at=created_at,
    )


# ------------------------------------------------------------------
# Cleanup
# ------------------------------------------------------------------

def _clean_demo_data(store: AnnotationStore) -> int:
    """Delete all [DEMO] annotations. Returns count deleted."""
    deleted = 0
    for record in store.get_all():
        if record.name.startswith(DEMO_PREFIX):
            store.delete(record.id)
            print(f"  DELETE  {record.name} (id={record.id})")
            deleted += 1
    if not deleted:
        print("  No existing demo data to clean.")
    return deleted


# ------------------------------------------------------------------
# Main
# ------------------------------------------------------------------

def seed(store: AnnotationStore, clean: bool = False) -> int:
    """Seed demo annotations into *store*. Returns the number written."""
    print("=" * 60)
    print("VoxNotes Demo Data Seeder")
    print("=" * 60)

    if clean:
        print("\n[1/2] Cleaning existing demo data...")
        deleted = _clean_demo_data(store)
        print(f"  Deleted {deleted} demo annotation(s).")
    else:
        print("\n[1/2] Checking for existing demo data...")
        existing = [r.name for r in store.get_all() if r.name.startswith(DEMO_PREFIX)]
        if existing:
            print(f"  Demo data already exists ({len(existing)} annotation(s)):")
            for name in existing:
                print(f"    - {name}")
            print("  Use --clean to delete and re-seed.")
            return 0

    print(f"\n[2/2] Seeding {len(SCENARIOS)} annotations...")
    base = datetime.now(UTC) - timedelta(days=len(SCENARIOS))
    for i, scenario in enumerate(SCENARIOS):
        record = _build_record(scenario, base + timedelta(days=i))
        store.save(record)
        print(f"  [{i + 1}/{len(SCENARIOS)}] {record.name} (id={record.id})")

    print("\nSeed complete.")
    return len(SCENARIOS)


def main(argv: list[str] | None = None) -> int:
    """Entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Seed VoxNotes demo annotations")
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Delete existing [DEMO] annotations before seeding",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    settings = get_settings()
    medium = create_medium(
        settings.storage_backend,
        directory=settings.storage_dir,
        url=settings.database_url,
    )
    seed(AnnotationStore(medium, key=settings.storage_key), clean=args.clean)
    return 0


if __name__ == "__main__":
    sys.exit(main())
