"""Photo-level quality aggregation over included face detections.

Scoring (0-100), with configurable weights that must sum to 100::

    eyes_open   * share of faces not flagged with closed eyes
  + expression  * share of faces without a poor expression
  + smile       * mean smile intensity
  + face_quality* mean per-face quality / 100

Closed eyes and poor expressions carry the heaviest weights, so they move the
score far more than small differences in smile intensity. Unknown signals are
neutral: unknown eyes count as open, unknown smile or face quality count as 0.5.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from core.errors import EmptyInputError
from core.models import FaceDetection, PhotoAssessment, Rating, Recommendation
from core.services.face_selection import FaceSelectionRegistry

NEGATIVE_EXPRESSIONS = frozenset({"sad", "angry"})
NEUTRAL_SIGNAL = 0.5


@dataclass
class QualityWeights:
    eyes_open: float = 40.0
    expression: float = 30.0
    smile: float = 15.0
    face_quality: float = 15.0

    def total(self) -> float:
        return self.eyes_open + self.expression + self.smile + self.face_quality


@dataclass
class QualityConfig:
    """Tunable thresholds for the aggregator.

    Attributes:
        weights: Score weights, summing to 100.
        blur_cutoff: Faces whose quality score is below this are blurry.
        poor_expression_threshold: Expression confidence below this is poor.
        rating_thresholds: Minimum scores for best, good and acceptable.
    """

    weights: QualityWeights = field(default_factory=QualityWeights)
    blur_cutoff: float = 40.0
    poor_expression_threshold: float = 0.3
    rating_thresholds: tuple[float, float, float] = (85.0, 70.0, 50.0)

    def __post_init__(self) -> None:
        if abs(self.weights.total() - 100.0) > 0.01:
            raise ValueError(f"Quality weights must sum to 100, got {self.weights.total()}")
        best, good, acceptable = self.rating_thresholds
        if not best >= good >= acceptable:
            raise ValueError(f"Rating thresholds must be descending: {self.rating_thresholds}")


def undetermined(photo_id: str, detection_unavailable: bool = False) -> PhotoAssessment:
    """Assessment for a photo with no face to judge."""
    return PhotoAssessment(
        photo_id=photo_id,
        overall_score=None,
        faces_judged=0,
        detection_unavailable=detection_unavailable,
    )


class QualityAggregator:
    """Reduces face detections to a `PhotoAssessment`."""

    def __init__(self, config: QualityConfig | None = None) -> None:
        self._cfg = config or QualityConfig()

    @property
    def config(self) -> QualityConfig:
        return self._cfg

    def is_closed_eyes(self, face: FaceDetection) -> bool:
        return face.eyes_open is False

    def is_poor_expression(self, face: FaceDetection) -> bool:
        if face.expression in NEGATIVE_EXPRESSIONS:
            return True
        conf = face.expression_confidence
        return conf is not None and conf < self._cfg.poor_expression_threshold

    def is_blurry(self, face: FaceDetection) -> bool:
        return face.quality_score is not None and face.quality_score < self._cfg.blur_cutoff

    def assess_photo(
        self,
        photo_id: str,
        faces: Sequence[FaceDetection],
        registry: FaceSelectionRegistry,
        detection_unavailable: bool = False,
        strict: bool = False,
    ) -> PhotoAssessment:
        """Filter `faces` through the registry, then aggregate."""
        included = [f for i, f in enumerate(faces) if registry.is_included(photo_id, i)]
        return self.assess(photo_id, included, detection_unavailable, strict)

    def assess(
        self,
        photo_id: str,
        faces: Sequence[FaceDetection],
        detection_unavailable: bool = False,
        strict: bool = False,
    ) -> PhotoAssessment:
        """Aggregate already-filtered faces.

        Args:
            photo_id: Photo being judged.
            faces: Included faces only.
            detection_unavailable: Detection failed; treated as zero faces.
            strict: Raise `EmptyInputError` instead of returning an
                undetermined assessment when there is nothing to judge.
        """
        if detection_unavailable:
            faces = []
        if not faces:
            if strict:
                raise EmptyInputError(f"No included faces to judge for photo {photo_id}")
            return undetermined(photo_id, detection_unavailable)

        n = len(faces)
        closed = sum(1 for f in faces if self.is_closed_eyes(f))
        poor = sum(1 for f in faces if self.is_poor_expression(f))
        blurry = sum(1 for f in faces if self.is_blurry(f))

        w = self._cfg.weights
        score = (
            w.eyes_open * (n - closed) / n
            + w.expression * (n - poor) / n
            + w.smile * sum(_smile_signal(f) for f in faces) / n
            + w.face_quality * sum(_quality_signal(f) for f in faces) / n
        )
        score = round(min(100.0, max(0.0, score)), 2)

        return PhotoAssessment(
            photo_id=photo_id,
            overall_score=score,
            faces_judged=n,
            closed_eyes=closed,
            poor_expressions=poor,
            blurry_faces=blurry,
            rating=self._rate(score),
            recommendation=_recommend(closed, poor, blurry),
        )

    def _rate(self, score: float) -> Rating:
        best, good, acceptable = self._cfg.rating_thresholds
        if score >= best:
            return Rating.BEST
        if score >= good:
            return Rating.GOOD
        if score >= acceptable:
            return Rating.ACCEPTABLE
        return Rating.POOR


def _smile_signal(face: FaceDetection) -> float:
    if face.smile_intensity is not None:
        return min(1.0, max(0.0, float(face.smile_intensity)))
    if face.smile_detected is None:
        return NEUTRAL_SIGNAL
    return 1.0 if face.smile_detected else 0.0


def _quality_signal(face: FaceDetection) -> float:
    if face.quality_score is None:
        return NEUTRAL_SIGNAL
    return min(100.0, max(0.0, float(face.quality_score))) / 100.0


def _recommend(closed: int, poor: int, blurry: int) -> Recommendation:
    # Priority: closed eyes, then expression, then blur.
    if closed:
        return Recommendation.CLOSED_EYES
    if poor:
        return Recommendation.POOR_EXPRESSION
    if blurry:
        return Recommendation.BLURRY
    return Recommendation.RECOMMENDED
