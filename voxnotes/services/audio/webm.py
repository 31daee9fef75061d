"""WebM duration rewrite.

Recorders that stream WebM write the ``Segment`` header before they know how
long the recording will be, so the container carries no ``Duration`` and
players cannot seek or report length. ``fix_webm_duration`` walks the EBML
tree down to ``Segment/Info`` and writes the wall-clock duration there.

Only the header region is rebuilt; cluster data is copied through untouched.
"""

import logging
import struct
from collections.abc import Iterator

logger = logging.getLogger(__name__)

SEGMENT_ID = 0x18538067
INFO_ID = 0x1549A966
TIMECODE_SCALE_ID = 0x2AD7B1
DURATION_ID = 0x4489
CLUSTER_ID = 0x1F43B675

# Matroska default: one timecode tick is one millisecond
DEFAULT_TIMECODE_SCALE = 1_000_000


class EbmlError(ValueError):
    """Raised for malformed or truncated EBML data."""


def _read_vint(data: bytes, pos: int, *, keep_marker: bool) -> tuple[int, int]:
    """Decode an EBML variable-length integer at *pos*.

    Returns:
        ``(value, length_in_bytes)``. IDs keep their length marker bit,
        sizes do not.
    """
    if pos >= len(data):
        raise EbmlError(f"unexpected end of data at offset {pos}")
    first = data[pos]
    if first == 0:
        raise EbmlError(f"invalid variable-length integer at offset {pos}")
    length = 9 - first.bit_length()
    end = pos + length
    if end > len(data):
        raise EbmlError(f"truncated variable-length integer at offset {pos}")
    value = int.from_bytes(data[pos:end], "big")
    if not keep_marker:
        value &= (1 << (7 * length)) - 1
    return value, length


def _read_size(data: bytes, pos: int) -> tuple[int | None, int]:
    """Decode an element size; ``None`` means "unknown" (all value bits set)."""
    value, length = _read_vint(data, pos, keep_marker=False)
    if value == (1 << (7 * length)) - 1:
        return None, length
    return value, length


def _encode_size(value: int, min_width: int = 1) -> bytes:
    width = min_width
    # The all-ones pattern of each width is reserved for "unknown size"
    while value >= (1 << (7 * width)) - 1:
        width += 1
    if width > 8:
        raise EbmlError(f"element size too large: {value}")
    return (value | (1 << (7 * width))).to_bytes(width, "big")


def _encode_id(element_id: int) -> bytes:
    return element_id.to_bytes((element_id.bit_length() + 7) // 8, "big")


def _iter_elements(
    data: bytes, start: int, end: int
) -> Iterator[tuple[int, int, int, int | None, int]]:
    """Yield ``(id, element_start, body_start, size, size_len)`` for siblings.

    Iteration stops after an element of unknown size, since its end can only
    be found by parsing its children.
    """
    pos = start
    while pos < end:
        element_id, id_len = _read_vint(data, pos, keep_marker=True)
        size, size_len = _read_size(data, pos + id_len)
        body = pos + id_len + size_len
        yield element_id, pos, body, size, size_len
        if size is None:
            return
        pos = body + size


def _duration_element(duration_ms: float, timecode_scale: int) -> bytes:
    ticks = duration_ms * 1_000_000 / timecode_scale
    return _encode_id(DURATION_ID) + _encode_size(8) + struct.pack(">d", ticks)


def _rebuild_info(data: bytes, start: int, end: int, duration_ms: float) -> bytes:
    children = []
    for element_id, child_start, body, size, _ in _iter_elements(data, start, end):
        if size is None or body + size > end:
            raise EbmlError(f"malformed Info child at offset {child_start}")
        children.append((element_id, child_start, body, size))

    timecode_scale = DEFAULT_TIMECODE_SCALE
    for element_id, _, body, size in children:
        if element_id == TIMECODE_SCALE_ID and size:
            timecode_scale = int.from_bytes(data[body : body + size], "big") or timecode_scale

    duration = _duration_element(duration_ms, timecode_scale)
    parts = []
    replaced = False
    for element_id, child_start, body, size in children:
        if element_id == DURATION_ID:
            if not replaced:
                parts.append(duration)
                replaced = True
            continue
        parts.append(data[child_start : body + size])
    if not replaced:
        parts.append(duration)

    payload = b"".join(parts)
    return _encode_id(INFO_ID) + _encode_size(len(payload)) + payload


def _rewrite_segment(
    data: bytes,
    seg_body: int,
    seg_size: int | None,
    seg_size_len: int,
    duration_ms: float,
) -> bytes:
    seg_end = len(data) if seg_size is None else min(seg_body + seg_size, len(data))
    for element_id, start, body, size, _ in _iter_elements(data, seg_body, seg_end):
        if element_id == CLUSTER_ID:
            break
        if element_id != INFO_ID:
            continue
        if size is None or body + size > len(data):
            raise EbmlError("Info element is truncated or has unknown size")

        info_end = body + size
        new_info = _rebuild_info(data, body, info_end, duration_ms)
        size_start = seg_body - seg_size_len
        if seg_size is None:
            size_field = data[size_start:seg_body]
        else:
            delta = len(new_info) - (info_end - start)
            size_field = _encode_size(seg_size + delta, min_width=seg_size_len)
        return b"".join(
            (
                data[:size_start],
                size_field,
                data[seg_body:start],
                new_info,
                data[info_end:],
            )
        )
    raise EbmlError("no Info element before the first Cluster")


def fix_webm_duration(data: bytes, duration_ms: float) -> bytes:
    """Return *data* with ``Segment/Info/Duration`` set to *duration_ms*.

    An existing ``Duration`` is replaced, a missing one is inserted. A known
    ``Segment`` size grows with the ``Info`` element; an unknown (streamed)
    size stays unknown.

    Args:
        data: Complete WebM file bytes.
        duration_ms: Recording duration in milliseconds.

    Returns:
        The rewritten bytes, or *data* unchanged if it cannot be parsed.
    """
    try:
        for element_id, _, body, size, size_len in _iter_elements(data, 0, len(data)):
            if element_id == SEGMENT_ID:
                return _rewrite_segment(data, body, size, size_len, duration_ms)
        raise EbmlError("no Segment element found")
    except EbmlError as exc:
        logger.warning("Could not rewrite WebM duration (%d bytes): %s", len(data), exc)
        return data
