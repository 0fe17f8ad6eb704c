"""Per-photo, per-face inclusion registry.

Entries are sparse: a face without an explicit entry is included. A detection
pass reset discards every entry of the photo, so indices from an older pass
never leak into the new one.
"""

from __future__ import annotations

from loguru import logger

DEFAULT_INCLUDED = True


class FaceSelectionRegistry:
    """Tracks which detected faces count toward a photo's quality score."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[int, bool]] = {}
        self._face_counts: dict[str, int] = {}

    def set_inclusion(self, photo_id: str, face_index: int, included: bool) -> None:
        """Create or overwrite the entry for (photo, face). Unknown targets are accepted."""
        self._entries.setdefault(photo_id, {})[int(face_index)] = bool(included)

    def is_included(self, photo_id: str, face_index: int) -> bool:
        """Return the stored flag, or the default (included) when absent."""
        return self._entries.get(photo_id, {}).get(int(face_index), DEFAULT_INCLUDED)

    def reset_for_photo(self, photo_id: str, face_count: int) -> None:
        """Start over for a photo after a completed detection pass."""
        if face_count < 0:
            raise ValueError(f"face_count must be >= 0: {face_count}")
        dropped = len(self._entries.get(photo_id, {}))
        self._entries[photo_id] = {i: True for i in range(face_count)}
        self._face_counts[photo_id] = face_count
        logger.debug(
            "Face selection reset: photo={} faces={} dropped_entries={}",
            photo_id,
            face_count,
            dropped,
        )

    def forget(self, photo_id: str) -> None:
        """Drop everything known about a photo."""
        self._entries.pop(photo_id, None)
        self._face_counts.pop(photo_id, None)

    def count_total(self, photo_id: str) -> int:
        """Number of faces from the latest pass."""
        return self._face_counts.get(photo_id, 0)

    def count_selected(self, photo_id: str) -> int:
        """Number of faces from the latest pass that are included."""
        return len(self.included_indices(photo_id, self.count_total(photo_id)))

    def included_indices(self, photo_id: str, face_count: int) -> list[int]:
        return [i for i in range(face_count) if self.is_included(photo_id, i)]

    def totals(self) -> tuple[int, int]:
        """Return (selected, total) across every known photo."""
        selected = 0
        total = 0
        for photo_id in self._face_counts:
            selected += self.count_selected(photo_id)
            total += self.count_total(photo_id)
        return selected, total
