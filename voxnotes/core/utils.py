"""Shared utility functions for VoxNotes."""


def format_audio_timestamp(seconds: float) -> str:
    """Format a duration in seconds as ``MM:SS`` (``H:MM:SS`` past an hour)."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def truncate_text(text: str, max_length: int = 100) -> str:
    """Cut *text* to *max_length* characters, appending an ellipsis if cut."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
