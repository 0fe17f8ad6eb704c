"""Best-photo selection for groups and sessions.

A manual pick is stored exactly like an automatic one: the group's
`best_photo_id` plus the photo's `is_selected_best` flag. Nothing marks it as
manual, so a later `apply_auto_best` call replaces it. Callers that want a
manual pick to stick must not re-run the automatic selection for that group.
`reconsider_on_change` controls whether the selector itself re-runs it when a
photo is added to a group.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from core.errors import InvalidReference
from core.models import GroupUpdate, PhotoGroup
from core.services.interfaces import IPersistenceSink
from core.services.sort_service import photo_sort_key


class BestPhotoSelector:
    """Computes and stores best-photo picks."""

    def __init__(
        self,
        sink: IPersistenceSink | None = None,
        reconsider_on_change: bool = False,
    ) -> None:
        """Create a selector.

        Args:
            sink: Optional persistence sink receiving `set_best` updates.
            reconsider_on_change: If True, adding a photo to a group re-runs
                the automatic pick for that group, replacing a manual one.
        """
        self._sink = sink
        self.reconsider_on_change = reconsider_on_change

    def compute_auto_best(self, group: PhotoGroup) -> str | None:
        """Return the id of the top photo under the display ordering."""
        if not group.photos:
            return None
        return min(group.photos, key=photo_sort_key).id

    def compute_session_best(self, groups: Iterable[PhotoGroup]) -> str | None:
        """Return the top photo across all groups."""
        candidates = [p for g in groups for p in g.photos]
        if not candidates:
            return None
        return min(candidates, key=photo_sort_key).id

    def set_manual_best(self, group: PhotoGroup, photo_id: str, emit: bool = True) -> None:
        """Designate `photo_id` as the group's best photo.

        Args:
            group: Group to update.
            photo_id: New best photo; must be a member.
            emit: Forward a `set_best` update. Callers that fold the pick into
                their own update pass False.

        Raises:
            InvalidReference: If the photo is not a member of the group.
        """
        target = group.find_photo(photo_id)
        if target is None:
            logger.warning("Rejected best pick {}: not a member of group {}", photo_id, group.id)
            raise InvalidReference(f"Photo {photo_id} is not a member of group {group.id}")
        self._store(group, photo_id, emit)

    def apply_auto_best(self, group: PhotoGroup, emit: bool = True) -> str | None:
        """Store the automatic pick as the group's best photo."""
        best = self.compute_auto_best(group)
        if best is None:
            self.clear_best(group, emit)
        else:
            self._store(group, best, emit)
        return best

    def clear_best(self, group: PhotoGroup, emit: bool = True) -> None:
        if group.best_photo_id is None and not any(p.is_selected_best for p in group.photos):
            return
        for photo in group.photos:
            photo.is_selected_best = False
        group.best_photo_id = None
        if emit:
            self._emit(group, None)

    def on_photo_added(self, group: PhotoGroup, emit: bool = True) -> bool:
        """Hook run after a photo joins `group`.

        Returns:
            True if the automatic pick was re-run.
        """
        if not self.reconsider_on_change:
            return False
        self.apply_auto_best(group, emit)
        return True

    def _store(self, group: PhotoGroup, photo_id: str, emit: bool) -> None:
        for photo in group.photos:
            photo.is_selected_best = photo.id == photo_id
        group.best_photo_id = photo_id
        logger.info("Best photo of group {} set to {}", group.id, photo_id)
        if emit:
            self._emit(group, photo_id)

    def _emit(self, group: PhotoGroup, photo_id: str | None) -> None:
        if self._sink is not None:
            self._sink.apply(
                GroupUpdate(
                    action="set_best",
                    group_id=group.id,
                    photo_id=photo_id,
                    payload={"best_photo_id": photo_id},
                )
            )
