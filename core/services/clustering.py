"""Average-linkage clustering of photos from a pairwise similarity matrix.

The matrix comes either from the grouping source directly or from
`core.services.similarity`, which derives it from capture time, faces and
image dimensions. This module only turns it into the initial auto groups.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from loguru import logger
import numpy as np

from core.models import GroupType, Photo, PhotoGroup


@dataclass
class GroupingOptions:
    """Clustering limits and pairwise similarity weights.

    Attributes:
        similarity_threshold: Stop merging once the best pair is below this.
        max_group_size: Never merge a pair whose combined size exceeds this.
        min_group_size: Clusters smaller than this are dropped.
        temporal_weight: Weight of capture-time closeness.
        face_weight: Weight of face count and face layout agreement.
        metadata_weight: Weight of aspect ratio and pixel area agreement.
        temporal_decay_seconds: Time constant of the capture-time decay.
        burst_window_seconds: Pairs shot closer than this get `burst_boost`.
        burst_boost: Added to the weighted similarity of a burst pair.
    """

    similarity_threshold: float = 0.55
    max_group_size: int = 15
    min_group_size: int = 2
    temporal_weight: float = 0.5
    face_weight: float = 0.35
    metadata_weight: float = 0.15
    temporal_decay_seconds: float = 60.0
    burst_window_seconds: float = 10.0
    burst_boost: float = 0.15

    def validate(self) -> None:
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("Similarity threshold must be between 0 and 1")
        if self.min_group_size < 2:
            raise ValueError("Minimum group size must be at least 2")
        if self.max_group_size < self.min_group_size:
            raise ValueError(
                "Maximum group size must be greater than or equal to minimum group size"
            )
        weights = (self.temporal_weight, self.face_weight, self.metadata_weight)
        if any(w < 0 for w in weights) or abs(sum(weights) - 1.0) > 0.01:
            raise ValueError(f"Similarity weights must be non-negative and sum to 1: {weights}")
        if self.temporal_decay_seconds <= 0:
            raise ValueError("Temporal decay must be positive")
        if self.burst_window_seconds < 0 or self.burst_boost < 0:
            raise ValueError("Burst window and boost must not be negative")


@dataclass
class PhotoCluster:
    photo_ids: list[str]
    avg_similarity: float


def _as_matrix(photo_ids: Sequence[str], matrix: Iterable[Iterable[float]]) -> np.ndarray:
    m = np.asarray(matrix, dtype=float)
    n = len(photo_ids)
    if m.shape != (n, n):
        raise ValueError(f"Similarity matrix shape {m.shape} does not match {n} photos")
    if not np.allclose(m, m.T):
        raise ValueError("Similarity matrix must be symmetric")
    return m


def cluster(
    photo_ids: Sequence[str],
    matrix: Iterable[Iterable[float]],
    options: GroupingOptions | None = None,
) -> list[PhotoCluster]:
    """Agglomerate photos by average linkage.

    Args:
        photo_ids: Photo ids in matrix order.
        matrix: Symmetric pairwise similarities in [0, 1].
        options: Clustering limits (defaults to `GroupingOptions()`).
    """
    opts = options or GroupingOptions()
    opts.validate()
    m = _as_matrix(photo_ids, matrix)

    clusters: list[list[int]] = [[i] for i in range(len(photo_ids))]
    while len(clusters) > 1:
        best = -1.0
        pair: tuple[int, int] | None = None
        for i in range(len(clusters)):
            for j in range(i + 1, len(clusters)):
                # Pairs that would outgrow the size limit are never merged.
                if len(clusters[i]) + len(clusters[j]) > opts.max_group_size:
                    continue
                link = float(m[np.ix_(clusters[i], clusters[j])].mean())
                if link > best:
                    best = link
                    pair = (i, j)
        if pair is None or best < opts.similarity_threshold:
            break
        i, j = pair
        merged = clusters[i] + clusters[j]
        clusters = [c for k, c in enumerate(clusters) if k not in (i, j)]
        clusters.append(merged)

    result: list[PhotoCluster] = []
    for members in clusters:
        if len(members) < opts.min_group_size:
            continue
        sub = m[np.ix_(members, members)]
        upper = sub[np.triu_indices(len(members), k=1)]
        avg = float(upper.mean()) if upper.size else 0.0
        result.append(PhotoCluster(photo_ids=[photo_ids[k] for k in members], avg_similarity=avg))

    logger.info(
        "Clustered {} photos into {} groups (threshold={})",
        len(photo_ids),
        len(result),
        opts.similarity_threshold,
    )
    return result


def build_auto_groups(
    clusters: Sequence[PhotoCluster],
    photos: Iterable[Photo],
    id_prefix: str = "group",
) -> list[PhotoGroup]:
    """Create `auto` groups named "Group N" from clusters."""
    by_id = {p.id: p for p in photos}
    groups: list[PhotoGroup] = []
    for c in clusters:
        members = [by_id[pid] for pid in c.photo_ids if pid in by_id]
        if not members:
            continue
        number = len(groups) + 1
        group = PhotoGroup(
            id=f"{id_prefix}-{number}",
            name=f"Group {number}",
            group_type=GroupType.AUTO,
            confidence_score=c.avg_similarity,
            similarity_score=c.avg_similarity,
            photos=members,
        )
        for photo in members:
            photo.group_id = group.id
        groups.append(group)
    return groups
