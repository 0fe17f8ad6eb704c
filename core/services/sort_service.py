"""Sorting service for photos inside a `PhotoGroup`.

Order: descending score (quality score, else confidence score, else 0), then
ascending original filename compared by code point, so "Zeta.jpg" sorts
before "alpha.jpg". Python's sort is stable, so photos with identical score
and filename keep their relative order and re-sorting is a no-op.
"""

from __future__ import annotations

from collections.abc import Iterable

from core.models import Photo, PhotoGroup


def photo_sort_key(photo: Photo) -> tuple[float, str]:
    """Key placing the most desirable photo first."""
    return (-photo.display_score, photo.original_filename or "")


class SortService:
    """Provides ordering utilities for photo groups."""

    def sorted_photos(self, photos: Iterable[Photo]) -> list[Photo]:
        """Return a new list in display order without mutating the input."""
        decorated = [(photo_sort_key(p), i, p) for i, p in enumerate(photos)]
        decorated.sort(key=lambda x: (x[0], x[1]))
        return [p for _, _, p in decorated]

    def sort_photos(self, group: PhotoGroup) -> list[Photo]:
        """Sort `group.photos` in place and return the list."""
        group.photos = self.sorted_photos(group.photos)
        return group.photos

    def sort(self, groups: Iterable[PhotoGroup]) -> None:
        """Sort every group in place."""
        for group in groups:
            self.sort_photos(group)
