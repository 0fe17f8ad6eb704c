"""Lightweight view model wrapper around `Photo`."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Photo, PhotoAssessment, Recommendation


@dataclass
class PhotoVM:
    """Expose convenient properties for bindings/templates."""

    photo: Photo
    assessment: PhotoAssessment | None = None
    faces_selected: int = 0
    faces_total: int = 0

    @property
    def photo_id(self) -> str:
        return self.photo.id

    @property
    def file_name(self) -> str:
        """Original upload filename."""
        return self.photo.original_filename

    @property
    def score(self) -> float:
        """Quality score if known, else confidence score, else 0."""
        return self.photo.display_score

    @property
    def is_best(self) -> bool:
        """True if the photo is the selected best of its group."""
        return bool(self.photo.is_selected_best)

    @property
    def recommendation(self) -> str:
        """Recommendation label, "undetermined" when never assessed."""
        if self.assessment is None:
            return Recommendation.UNDETERMINED.value
        return self.assessment.recommendation.value

    @property
    def faces_text(self) -> str:
        """Progress text such as "2 of 3"."""
        return f"{self.faces_selected} of {self.faces_total}"
