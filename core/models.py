"""Core domain models for photos, face detections and similarity groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class GroupType(str, Enum):
    """Provenance of a group."""

    AUTO = "auto"
    MANUAL = "manual"
    MERGED = "merged"


class Rating(str, Enum):
    """Score band of an assessed photo."""

    BEST = "best"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    UNDETERMINED = "undetermined"


class Recommendation(str, Enum):
    """Short label derived from the issue counts of an assessment."""

    RECOMMENDED = "recommended"
    CLOSED_EYES = "closed_eyes"
    POOR_EXPRESSION = "poor_expression"
    BLURRY = "blurry"
    UNDETERMINED = "undetermined"


EXPRESSIONS = ("happy", "neutral", "sad", "surprised", "angry")


@dataclass(frozen=True)
class BoundingBox:
    """Face box as fractions of the image width/height."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"bounding box {name} out of [0, 1]: {value}")


@dataclass
class FaceDetection:
    """One face from a detection pass. Its identity is its list index."""

    bounding_box: BoundingBox
    confidence: float | None = None
    eyes_open: bool | None = None
    smile_detected: bool | None = None
    smile_intensity: float | None = None
    expression: str | None = None
    expression_confidence: float | None = None
    quality_score: float | None = None


@dataclass
class Photo:
    """A single uploaded photo."""

    id: str
    file_url: str
    original_filename: str
    quality_score: float | None = None
    confidence_score: float | None = None
    is_selected_best: bool = False
    group_id: str | None = None
    taken_at: datetime | None = None
    width: int | None = None
    height: int | None = None

    @property
    def display_score(self) -> float:
        """Quality score if known, else confidence score, else 0."""
        if self.quality_score is not None:
            return float(self.quality_score)
        if self.confidence_score is not None:
            return float(self.confidence_score)
        return 0.0


@dataclass
class TimeRange:
    start: datetime
    end: datetime


@dataclass
class GroupMetadata:
    """Optional descriptive block attached by the grouping source."""

    dominant_colors: list[str] = field(default_factory=list)
    average_brightness: float | None = None
    face_count: int | None = None
    time_range: TimeRange | None = None


@dataclass
class PhotoGroup:
    """A cluster of photos judged similar."""

    id: str
    name: str
    group_type: GroupType = GroupType.AUTO
    confidence_score: float = 0.0
    similarity_score: float = 0.0
    photos: list[Photo] = field(default_factory=list)
    best_photo_id: str | None = None
    metadata: GroupMetadata | None = None

    def find_photo(self, photo_id: str) -> Photo | None:
        """Return the member with `photo_id`, or None."""
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        return None

    def has_photo(self, photo_id: str) -> bool:
        return self.find_photo(photo_id) is not None


@dataclass
class PhotoAssessment:
    """Aggregated quality of one photo over its included faces.

    `overall_score` is None when no face was judged, which is distinct from a
    judged photo that scored poorly.
    """

    photo_id: str
    overall_score: float | None
    faces_judged: int
    closed_eyes: int = 0
    poor_expressions: int = 0
    blurry_faces: int = 0
    rating: Rating = Rating.UNDETERMINED
    recommendation: Recommendation = Recommendation.UNDETERMINED
    detection_unavailable: bool = False

    @property
    def is_determined(self) -> bool:
        return self.overall_score is not None


@dataclass
class SessionStats:
    """Aggregate numbers over the current group list."""

    total_photos: int
    total_groups: int
    avg_confidence: float
    avg_similarity: float


@dataclass
class GroupSummary:
    """Per-group numbers for list views."""

    group_id: str
    photo_count: int
    avg_score: float
    best_photo_id: str | None


@dataclass
class GroupUpdate:
    """A single idempotent update forwarded to the persistence sink.

    Attributes:
        action: One of "rename", "move", "merge", "set_best", "delete", "create".
        group_id: Group the update applies to.
        photo_id: Photo involved, when the action targets one.
        payload: Scalar values describing the new state.
    """

    action: str
    group_id: str
    photo_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
