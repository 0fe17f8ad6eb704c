"""ViewModel owning one photo session and reconciling edits with scores."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import itertools

from loguru import logger

from app.viewmodels.group_vm import GroupVM
from app.viewmodels.photo_vm import PhotoVM
from core.errors import NotFoundError
from core.models import (
    FaceDetection,
    GroupSummary,
    Photo,
    PhotoAssessment,
    PhotoGroup,
    SessionStats,
)
from core.services.face_selection import FaceSelectionRegistry
from core.services.group_service import GroupService
from core.services.interfaces import DetectionResult, IPersistenceSink
from core.services.quality_service import QualityAggregator, undetermined
from core.services.selection_service import BestPhotoSelector
from core.services.sort_service import SortService
from core.services.stats_service import group_summary, session_stats


@dataclass(frozen=True)
class DetectionTicket:
    """Handle for an in-flight detection pass."""

    photo_id: str
    token: int


class SessionVM:
    """Single-writer owner of groups, faces, selections and assessments.

    Derived values flow forward (faces -> assessment -> photo quality score ->
    ordering, best pick, statistics). Edits flow backward: a face toggle or a
    completed detection pass re-assesses the photo and rewrites its quality
    score before the call returns, so no reader sees a stale score.
    """

    def __init__(
        self,
        aggregator: QualityAggregator | None = None,
        sink: IPersistenceSink | None = None,
        reconsider_on_change: bool = False,
    ) -> None:
        """Create a SessionVM.

        Args:
            aggregator: Quality aggregator (defaults to `QualityAggregator()`).
            sink: Optional persistence sink receiving one update per edit.
            reconsider_on_change: Re-run the automatic best pick of a group
                whenever a photo is moved into it.
        """
        self._aggregator = aggregator or QualityAggregator()
        self._sorter = SortService()
        self._selector = BestPhotoSelector(sink=sink, reconsider_on_change=reconsider_on_change)
        self._groups_svc = GroupService(sorter=self._sorter, selector=self._selector, sink=sink)
        self._registry = FaceSelectionRegistry()
        self._faces: dict[str, list[FaceDetection]] = {}
        self._unavailable: set[str] = set()
        self._assessments: dict[str, PhotoAssessment] = {}
        self._pending: dict[str, int] = {}
        self._tokens = itertools.count(1)
        self.groups: dict[str, PhotoGroup] = {}

    # --- loading -----------------------------------------------------------

    def load(self, groups: Iterable[PhotoGroup]) -> None:
        """Replace the session with a fresh group snapshot."""
        self.groups = {}
        for group in groups:
            for photo in group.photos:
                photo.group_id = group.id
            self._sorter.sort_photos(group)
            self.groups[group.id] = group
        self._registry = FaceSelectionRegistry()
        self._faces.clear()
        self._unavailable.clear()
        self._assessments.clear()
        self._pending.clear()
        logger.info(
            "Loaded session: {} groups, {} photos",
            len(self.groups),
            sum(len(g.photos) for g in self.groups.values()),
        )

    # --- queries -----------------------------------------------------------

    @property
    def group_list(self) -> list[PhotoGroup]:
        return list(self.groups.values())

    @property
    def group_count(self) -> int:
        """Number of groups currently loaded."""
        return len(self.groups)

    def get_group(self, group_id: str) -> PhotoGroup:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    def find_photo(self, photo_id: str) -> Photo:
        for group in self.groups.values():
            photo = group.find_photo(photo_id)
            if photo is not None:
                return photo
        raise NotFoundError(f"Photo {photo_id} not found")

    def faces(self, photo_id: str) -> list[FaceDetection]:
        return list(self._faces.get(photo_id, []))

    def is_face_included(self, photo_id: str, face_index: int) -> bool:
        return self._registry.is_included(photo_id, face_index)

    def assessment(self, photo_id: str) -> PhotoAssessment:
        """Latest assessment; undetermined if no detection pass completed."""
        self.find_photo(photo_id)
        return self._assessments.get(photo_id) or undetermined(photo_id)

    def sorted_photos(self, group_id: str) -> list[Photo]:
        return self._sorter.sorted_photos(self.get_group(group_id).photos)

    def selection_progress(self, photo_id: str | None = None) -> tuple[int, int]:
        """Return (selected, total) faces for one photo or the whole session."""
        if photo_id is None:
            return self._registry.totals()
        return self._registry.count_selected(photo_id), self._registry.count_total(photo_id)

    def stats(self) -> SessionStats:
        return session_stats(self.groups.values())

    def group_summaries(self) -> list[GroupSummary]:
        return [group_summary(g) for g in self.groups.values()]

    def compute_auto_best(self, group_id: str) -> str | None:
        return self._selector.compute_auto_best(self.get_group(group_id))

    def session_best_photo_id(self) -> str | None:
        return self._selector.compute_session_best(self.groups.values())

    def group_vms(self) -> list[GroupVM]:
        """Snapshot of every group in display order for the view layer."""
        result: list[GroupVM] = []
        for g in self.groups.values():
            items = [
                PhotoVM(
                    photo=p,
                    assessment=self._assessments.get(p.id),
                    faces_selected=self._registry.count_selected(p.id),
                    faces_total=self._registry.count_total(p.id),
                )
                for p in self._sorter.sorted_photos(g.photos)
            ]
            result.append(
                GroupVM(
                    group_id=g.id,
                    name=g.name,
                    group_type=g.group_type,
                    confidence_score=g.confidence_score,
                    similarity_score=g.similarity_score,
                    best_photo_id=g.best_photo_id,
                    items=items,
                )
            )
        return result

    # --- detection passes --------------------------------------------------

    def start_detection_pass(self, photo_id: str) -> DetectionTicket:
        """Register an in-flight pass; a newer pass supersedes older tickets."""
        self.find_photo(photo_id)
        token = next(self._tokens)
        self._pending[photo_id] = token
        return DetectionTicket(photo_id=photo_id, token=token)

    def cancel_detection_pass(self, ticket: DetectionTicket) -> None:
        """Forget the ticket. Existing faces and selections are untouched."""
        if self._pending.get(ticket.photo_id) == ticket.token:
            del self._pending[ticket.photo_id]

    def complete_detection_pass(
        self, ticket: DetectionTicket, faces: Sequence[FaceDetection]
    ) -> bool:
        """Install the faces of a finished pass.

        Returns:
            False if the ticket was cancelled or superseded; nothing changes then.
        """
        if not self._claim(ticket):
            return False
        self._install(ticket.photo_id, list(faces), unavailable=False)
        return True

    def fail_detection_pass(self, ticket: DetectionTicket) -> bool:
        """Record that detection is unavailable; the photo becomes undetermined."""
        if not self._claim(ticket):
            return False
        self._install(ticket.photo_id, [], unavailable=True)
        return True

    def apply_detection_results(
        self, results: Iterable[DetectionResult], complete_batch: bool = True
    ) -> int:
        """Apply a batch from the detection source.

        Args:
            results: One result per photo, in any order.
            complete_batch: The batch covers the whole session. Photos left
                out of it had no faces and are installed with zero faces, the
                same as an explicit empty entry. Photos with a pass in flight
                are left to that pass.

        Returns:
            Number of listed results applied.
        """
        applied = 0
        seen: set[str] = set()
        for result in results:
            try:
                ticket = self.start_detection_pass(result.photo_id)
            except NotFoundError:
                logger.warning("Detection result for unknown photo {} ignored", result.photo_id)
                continue
            seen.add(result.photo_id)
            if result.unavailable:
                self.fail_detection_pass(ticket)
            else:
                self.complete_detection_pass(ticket, result.faces)
            applied += 1

        if complete_batch:
            missing = [
                p.id
                for g in self.groups.values()
                for p in g.photos
                if p.id not in seen and p.id not in self._pending
            ]
            for photo_id in missing:
                self.complete_detection_pass(self.start_detection_pass(photo_id), [])
            if missing:
                logger.info("{} photos absent from detection batch set to zero faces", len(missing))
        return applied

    def _claim(self, ticket: DetectionTicket) -> bool:
        if self._pending.get(ticket.photo_id) != ticket.token:
            logger.info(
                "Stale detection pass {} for photo {} discarded", ticket.token, ticket.photo_id
            )
            return False
        del self._pending[ticket.photo_id]
        return True

    def _install(self, photo_id: str, faces: list[FaceDetection], unavailable: bool) -> None:
        self._faces[photo_id] = faces
        if unavailable:
            self._unavailable.add(photo_id)
        else:
            self._unavailable.discard(photo_id)
        self._registry.reset_for_photo(photo_id, len(faces))
        self._rescore(photo_id)

    # --- face selection ----------------------------------------------------

    def set_face_inclusion(self, photo_id: str, face_index: int, included: bool) -> PhotoAssessment:
        """Include or exclude a face and re-assess the photo.

        Raises:
            NotFoundError: Unknown photo or face index outside the latest pass.
        """
        self.find_photo(photo_id)
        count = len(self._faces.get(photo_id, []))
        if not 0 <= face_index < count:
            raise NotFoundError(f"Face {face_index} not found on photo {photo_id}")
        self._registry.set_inclusion(photo_id, face_index, included)
        return self._rescore(photo_id)

    def _rescore(self, photo_id: str) -> PhotoAssessment:
        result = self._aggregator.assess_photo(
            photo_id,
            self._faces.get(photo_id, []),
            self._registry,
            detection_unavailable=photo_id in self._unavailable,
        )
        self._assessments[photo_id] = result
        self.find_photo(photo_id).quality_score = result.overall_score
        logger.debug(
            "Assessed photo {}: score={} recommendation={}",
            photo_id,
            result.overall_score,
            result.recommendation.value,
        )
        return result

    # --- group edits -------------------------------------------------------

    def rename_group(self, group_id: str, new_name: str) -> None:
        self._groups_svc.rename(self.get_group(group_id), new_name)

    def move_photo(self, photo_id: str, from_group_id: str, to_group_id: str) -> None:
        self._groups_svc.move_photo(self.groups, photo_id, from_group_id, to_group_id)

    def merge_groups(
        self, group_a_id: str, group_b_id: str, name: str | None = None
    ) -> PhotoGroup:
        """Replace two groups by their merge, at the position of the first."""
        group_a = self.get_group(group_a_id)
        group_b = self.get_group(group_b_id)
        merged = self._groups_svc.merge(group_a, group_b, name)
        rebuilt: dict[str, PhotoGroup] = {}
        for gid, group in self.groups.items():
            if gid == group_a.id:
                rebuilt[merged.id] = merged
            elif gid != group_b.id:
                rebuilt[gid] = group
        self.groups = rebuilt
        return merged

    def remove_photo(
        self, group_id: str, photo_id: str, replacement_id: str | None = None
    ) -> None:
        """Delete a photo from the session."""
        self._groups_svc.remove_photo(self.get_group(group_id), photo_id, replacement_id)
        self._registry.forget(photo_id)
        self._faces.pop(photo_id, None)
        self._unavailable.discard(photo_id)
        self._assessments.pop(photo_id, None)
        self._pending.pop(photo_id, None)

    def create_manual_group(self, name: str, photo_ids: Sequence[str]) -> PhotoGroup:
        return self._groups_svc.create_manual_group(self.groups, name, photo_ids)

    def remove_group(self, group_id: str) -> None:
        """Drop an empty group from the session."""
        group = self.get_group(group_id)
        if group.photos:
            raise ValueError(f"Group {group_id} still has {len(group.photos)} photos")
        del self.groups[group_id]

    # --- best photo --------------------------------------------------------

    def set_manual_best(self, group_id: str, photo_id: str) -> None:
        self._selector.set_manual_best(self.get_group(group_id), photo_id)

    def recompute_best(self, group_id: str) -> str | None:
        """Deliberately re-run the automatic pick, replacing any manual one."""
        return self._selector.apply_auto_best(self.get_group(group_id))

    def recompute_all_best(self) -> None:
        for group in self.groups.values():
            self._selector.apply_auto_best(group)
