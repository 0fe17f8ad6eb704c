"""Core service interfaces and shared data structures.

This module defines the dataclasses and interfaces used to exchange data with
the external collaborators: the detection source, the grouping source and the
persistence sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from core.models import FaceDetection, GroupUpdate, PhotoGroup


@dataclass
class DetectionResult:
    """Outcome of one detection pass for a photo.

    Attributes:
        photo_id: Photo the faces belong to.
        faces: Detected faces in detector order.
        unavailable: True when detection failed (timeout, malformed response).
    """

    photo_id: str
    faces: list[FaceDetection] = field(default_factory=list)
    unavailable: bool = False


class IDetectionSource:
    """Interface for face detection providers."""

    def fetch(self, session_id: str) -> list[DetectionResult]:
        """Return detection results for the photos of `session_id`.

        Photos without faces may be absent from the list.
        """
        raise NotImplementedError


class IGroupingSource:
    """Interface for providers of the initial auto groups."""

    def load_groups(self, session_id: str) -> list[PhotoGroup]:
        """Return the group snapshot for `session_id`."""
        raise NotImplementedError


class IPersistenceSink:
    """Interface for stores receiving mutation records."""

    def apply(self, update: GroupUpdate) -> None:
        """Forward a single idempotent update."""
        raise NotImplementedError


class MemorySink(IPersistenceSink):
    """Keeps updates in a list; useful for hosts that batch writes."""

    def __init__(self) -> None:
        self.updates: list[GroupUpdate] = []

    def apply(self, update: GroupUpdate) -> None:
        self.updates.append(update)
