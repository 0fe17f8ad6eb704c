"""Pairwise photo similarity from capture time, faces and image dimensions.

similarity = temporal_weight * exp(-dt / temporal_decay_seconds)
           + face_weight     * mean(face count agreement, face layout agreement)
           + metadata_weight * mean(aspect ratio agreement, pixel area agreement)
           + burst_boost       (only when dt < burst_window_seconds)

clamped to [0, 1]. A signal that is unknown for either photo (no capture time,
no dimensions) contributes a neutral 0.5 and never earns the burst boost.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import math

from loguru import logger
import numpy as np

from core.models import FaceDetection, Photo
from core.services.clustering import GroupingOptions

NEUTRAL = 0.5


@dataclass(frozen=True)
class FacePosition:
    """Face centre and area, all as image fractions."""

    x: float
    y: float
    size: float


def face_positions(faces: Sequence[FaceDetection]) -> list[FacePosition]:
    return [
        FacePosition(
            x=f.bounding_box.x + f.bounding_box.width / 2,
            y=f.bounding_box.y + f.bounding_box.height / 2,
            size=f.bounding_box.width * f.bounding_box.height,
        )
        for f in faces
    ]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def temporal_similarity(a: Photo, b: Photo, options: GroupingOptions) -> tuple[float, bool]:
    """Return (similarity, is_burst) for the capture times of two photos."""
    if a.taken_at is None or b.taken_at is None:
        return NEUTRAL, False
    dt = abs((a.taken_at - b.taken_at).total_seconds())
    return math.exp(-dt / options.temporal_decay_seconds), dt < options.burst_window_seconds


def face_layout_similarity(
    positions_a: Sequence[FacePosition], positions_b: Sequence[FacePosition]
) -> float:
    """Mean over faces of `a` of the best match among faces of `b`.

    Two photos without faces agree fully; a photo with faces and one without
    do not agree at all.
    """
    if not positions_a and not positions_b:
        return 1.0
    if not positions_a or not positions_b:
        return 0.0
    total = 0.0
    for pa in positions_a:
        best = 0.0
        for pb in positions_b:
            distance = math.hypot(pa.x - pb.x, pa.y - pb.y)
            largest = max(pa.size, pb.size)
            size_sim = 1.0 - abs(pa.size - pb.size) / largest if largest > 0 else 1.0
            best = max(best, (max(0.0, 1.0 - distance) + size_sim) / 2)
        total += best
    return total / len(positions_a)


def face_similarity(faces_a: Sequence[FaceDetection], faces_b: Sequence[FaceDetection]) -> float:
    na, nb = len(faces_a), len(faces_b)
    count_sim = 1.0 - abs(na - nb) / max(na, nb, 1)
    layout_sim = face_layout_similarity(face_positions(faces_a), face_positions(faces_b))
    return (count_sim + layout_sim) / 2


def metadata_similarity(a: Photo, b: Photo) -> float:
    """Agreement of aspect ratio and pixel area."""
    if not (a.width and a.height and b.width and b.height):
        return NEUTRAL
    aspect_sim = _clamp(1.0 - abs(a.width / a.height - b.width / b.height))
    area_a = a.width * a.height
    area_b = b.width * b.height
    area_sim = 1.0 - abs(area_a - area_b) / max(area_a, area_b)
    return (aspect_sim + area_sim) / 2


def similarity(
    photo_a: Photo,
    photo_b: Photo,
    faces_a: Sequence[FaceDetection],
    faces_b: Sequence[FaceDetection],
    options: GroupingOptions | None = None,
) -> float:
    """Weighted similarity of two photos in [0, 1]."""
    opts = options or GroupingOptions()
    temporal, burst = temporal_similarity(photo_a, photo_b, opts)
    score = (
        opts.temporal_weight * temporal
        + opts.face_weight * face_similarity(faces_a, faces_b)
        + opts.metadata_weight * metadata_similarity(photo_a, photo_b)
    )
    if burst:
        score += opts.burst_boost
    return _clamp(score)


def similarity_matrix(
    photos: Sequence[Photo],
    faces_by_photo: Mapping[str, Sequence[FaceDetection]] | None = None,
    options: GroupingOptions | None = None,
) -> np.ndarray:
    """Symmetric matrix with ones on the diagonal, rows in `photos` order.

    Photos missing from `faces_by_photo` are treated as having no faces.
    """
    opts = options or GroupingOptions()
    opts.validate()
    faces = faces_by_photo or {}
    n = len(photos)
    m = np.eye(n)
    for i in range(n):
        for j in range(i + 1, n):
            value = similarity(
                photos[i], photos[j], faces.get(photos[i].id, []), faces.get(photos[j].id, []), opts
            )
            m[i, j] = m[j, i] = value
    logger.debug("Built {}x{} similarity matrix", n, n)
    return m
