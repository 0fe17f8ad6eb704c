"""Derived session statistics. Nothing here is stored; every call re-reads the groups."""

from __future__ import annotations

from collections.abc import Iterable

from core.models import GroupSummary, PhotoGroup, SessionStats


def session_stats(groups: Iterable[PhotoGroup]) -> SessionStats:
    """Totals and mean confidence/similarity; averages are 0 with no groups."""
    total_photos = 0
    total_groups = 0
    confidence_sum = 0.0
    similarity_sum = 0.0
    for group in groups:
        total_groups += 1
        total_photos += len(group.photos)
        confidence_sum += group.confidence_score or 0.0
        similarity_sum += group.similarity_score or 0.0

    if total_groups == 0:
        return SessionStats(total_photos=0, total_groups=0, avg_confidence=0.0, avg_similarity=0.0)
    return SessionStats(
        total_photos=total_photos,
        total_groups=total_groups,
        avg_confidence=confidence_sum / total_groups,
        avg_similarity=similarity_sum / total_groups,
    )


def group_summary(group: PhotoGroup) -> GroupSummary:
    count = len(group.photos)
    avg = sum(p.display_score for p in group.photos) / count if count else 0.0
    return GroupSummary(
        group_id=group.id,
        photo_count=count,
        avg_score=avg,
        best_photo_id=group.best_photo_id,
    )
