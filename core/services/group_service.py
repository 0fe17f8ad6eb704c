"""Group mutations: rename, move, merge, remove and manual grouping.

Each operation checks every reference first and only then mutates, so a
rejected call leaves all groups untouched. Cross-group operations update both
ends before returning. Every successful mutation is forwarded to the
persistence sink as exactly one `GroupUpdate`; best-photo changes caused by
the operation travel in that update's payload.
"""

from __future__ import annotations

from collections.abc import Callable, MutableMapping, Sequence
import uuid

from loguru import logger

from core.errors import InvalidReference, NotFoundError
from core.models import (
    GroupMetadata,
    GroupType,
    GroupUpdate,
    Photo,
    PhotoGroup,
    TimeRange,
)
from core.services.interfaces import IPersistenceSink
from core.services.selection_service import BestPhotoSelector
from core.services.sort_service import SortService


def _new_group_id() -> str:
    return uuid.uuid4().hex


class GroupService:
    """Applies user edits to similarity groups."""

    def __init__(
        self,
        sorter: SortService | None = None,
        selector: BestPhotoSelector | None = None,
        sink: IPersistenceSink | None = None,
        id_factory: Callable[[], str] = _new_group_id,
    ) -> None:
        self._sorter = sorter or SortService()
        self._selector = selector or BestPhotoSelector(sink=sink)
        self._sink = sink
        self._new_id = id_factory

    def rename(self, group: PhotoGroup, new_name: str) -> None:
        """Set the display name."""
        name = (new_name or "").strip()
        if not name:
            raise ValueError("Group name must not be blank")
        group.name = name
        self._emit("rename", group.id, payload={"name": name})

    def move_photo(
        self,
        groups: MutableMapping[str, PhotoGroup],
        photo_id: str,
        from_group_id: str,
        to_group_id: str,
    ) -> Photo:
        """Move a photo between groups.

        The photo is appended to the destination. If it was the source's best
        photo, the source is left without a best photo.

        Raises:
            NotFoundError: A group is unknown or the photo is not in the source.
        """
        source = groups.get(from_group_id)
        if source is None:
            raise NotFoundError(f"Group {from_group_id} not found")
        dest = groups.get(to_group_id)
        if dest is None:
            raise NotFoundError(f"Group {to_group_id} not found")
        photo = source.find_photo(photo_id)
        if photo is None:
            raise NotFoundError(f"Photo {photo_id} not found in group {from_group_id}")
        if source is dest:
            return photo

        was_best = source.best_photo_id == photo_id or photo.is_selected_best
        source.photos = [p for p in source.photos if p.id != photo_id]
        photo.is_selected_best = False
        photo.group_id = dest.id
        dest.photos.append(photo)
        if was_best:
            source.best_photo_id = None

        payload: dict = {"from_group_id": source.id, "to_group_id": dest.id}
        if was_best:
            payload["source_best_photo_id"] = None
        if self._selector.on_photo_added(dest, emit=False):
            payload["best_photo_id"] = dest.best_photo_id

        logger.info("Moved photo {} from group {} to {}", photo_id, source.id, dest.id)
        self._emit("move", dest.id, photo_id, payload)
        return photo

    def remove_photo(
        self,
        group: PhotoGroup,
        photo_id: str,
        replacement_id: str | None = None,
    ) -> Photo:
        """Remove a photo from `group`.

        Removing the best photo leaves the group without one unless
        `replacement_id` names another member to take its place.

        Raises:
            NotFoundError: The photo is not a member.
            InvalidReference: The replacement is not a remaining member.
        """
        photo = group.find_photo(photo_id)
        if photo is None:
            raise NotFoundError(f"Photo {photo_id} not found in group {group.id}")
        if replacement_id is not None and (
            replacement_id == photo_id or not group.has_photo(replacement_id)
        ):
            raise InvalidReference(
                f"Replacement {replacement_id} is not a remaining member of group {group.id}"
            )

        was_best = group.best_photo_id == photo_id or photo.is_selected_best
        group.photos = [p for p in group.photos if p.id != photo_id]
        photo.group_id = None
        photo.is_selected_best = False
        payload: dict = {}
        if replacement_id is not None:
            self._selector.set_manual_best(group, replacement_id, emit=False)
            payload["best_photo_id"] = replacement_id
        elif was_best:
            group.best_photo_id = None
            payload["best_photo_id"] = None
        self._emit("delete", group.id, photo_id, payload)
        return photo

    def merge(
        self,
        group_a: PhotoGroup,
        group_b: PhotoGroup,
        name: str | None = None,
    ) -> PhotoGroup:
        """Combine two groups into a new `merged` group.

        Confidence and similarity take the minimum of the inputs, since a
        merge can only lower certainty. The name is `name` when given, else
        the name of the higher-confidence group (the first on a tie). The
        best pick of that same group is carried over, falling back to the
        other group's pick.
        """
        if group_a is group_b or group_a.id == group_b.id:
            raise InvalidReference(f"Cannot merge group {group_a.id} with itself")

        primary, secondary = (
            (group_b, group_a)
            if group_b.confidence_score > group_a.confidence_score
            else (group_a, group_b)
        )
        merged_name = (name or "").strip() or primary.name

        seen: set[str] = set()
        members: list[Photo] = []
        for photo in [*group_a.photos, *group_b.photos]:
            if photo.id in seen:
                continue
            seen.add(photo.id)
            members.append(photo)

        best_id = None
        for candidate in (primary.best_photo_id, secondary.best_photo_id):
            if candidate is not None and candidate in seen:
                best_id = candidate
                break

        merged = PhotoGroup(
            id=self._new_id(),
            name=merged_name,
            group_type=GroupType.MERGED,
            confidence_score=min(group_a.confidence_score, group_b.confidence_score),
            similarity_score=min(group_a.similarity_score, group_b.similarity_score),
            photos=self._sorter.sorted_photos(members),
            best_photo_id=best_id,
            metadata=merge_metadata(group_a, group_b),
        )
        for photo in merged.photos:
            photo.group_id = merged.id
            photo.is_selected_best = photo.id == best_id

        logger.info(
            "Merged groups {} and {} into {} ({} photos)",
            group_a.id,
            group_b.id,
            merged.id,
            len(merged.photos),
        )
        self._emit(
            "merge",
            merged.id,
            payload={
                "source_group_ids": [group_a.id, group_b.id],
                "name": merged.name,
                "best_photo_id": best_id,
            },
        )
        return merged

    def create_manual_group(
        self,
        groups: MutableMapping[str, PhotoGroup],
        name: str,
        photo_ids: Sequence[str],
    ) -> PhotoGroup:
        """Pull `photo_ids` out of their groups into a new manual group.

        Raises:
            ValueError: Blank name or no photos.
            NotFoundError: A photo is not in any group.
        """
        group_name = (name or "").strip()
        if not group_name:
            raise ValueError("Group name must not be blank")
        wanted = list(dict.fromkeys(photo_ids))
        if not wanted:
            raise ValueError("A manual group needs at least one photo")

        owners: dict[str, PhotoGroup] = {}
        for group in groups.values():
            for photo in group.photos:
                if photo.id in wanted:
                    owners[photo.id] = group
        missing = [pid for pid in wanted if pid not in owners]
        if missing:
            raise NotFoundError(f"Photos not found in any group: {missing}")

        new_group = PhotoGroup(
            id=self._new_id(),
            name=group_name,
            group_type=GroupType.MANUAL,
            confidence_score=1.0,
            similarity_score=1.0,
        )
        cleared: list[str] = []
        for pid in wanted:
            source = owners[pid]
            photo = source.find_photo(pid)
            source.photos = [p for p in source.photos if p.id != pid]
            if source.best_photo_id == pid:
                source.best_photo_id = None
                cleared.append(source.id)
            photo.is_selected_best = False
            photo.group_id = new_group.id
            new_group.photos.append(photo)
        groups[new_group.id] = new_group

        logger.info("Created manual group {} with {} photos", new_group.id, len(wanted))
        self._emit(
            "create",
            new_group.id,
            payload={
                "name": group_name,
                "photo_ids": wanted,
                "cleared_best_group_ids": cleared,
            },
        )
        return new_group

    def _emit(
        self,
        action: str,
        group_id: str,
        photo_id: str | None = None,
        payload: dict | None = None,
    ) -> None:
        if self._sink is not None:
            self._sink.apply(
                GroupUpdate(action=action, group_id=group_id, photo_id=photo_id, payload=payload or {})
            )


def merge_metadata(group_a: PhotoGroup, group_b: PhotoGroup) -> GroupMetadata | None:
    """Combine the metadata blocks of two groups, or None if neither has one."""
    metas = [g.metadata for g in (group_a, group_b) if g.metadata is not None]
    if not metas:
        return None

    colors = list(dict.fromkeys(c for m in metas for c in m.dominant_colors))

    face_counts = [m.face_count for m in metas if m.face_count is not None]
    face_count = sum(face_counts) if face_counts else None

    weighted = [
        (g.metadata.average_brightness, max(len(g.photos), 1))
        for g in (group_a, group_b)
        if g.metadata is not None and g.metadata.average_brightness is not None
    ]
    brightness = None
    if weighted:
        brightness = sum(v * n for v, n in weighted) / sum(n for _, n in weighted)

    ranges = [m.time_range for m in metas if m.time_range is not None]
    time_range = None
    if ranges:
        time_range = TimeRange(
            start=min(r.start for r in ranges),
            end=max(r.end for r in ranges),
        )

    return GroupMetadata(
        dominant_colors=colors,
        average_brightness=brightness,
        face_count=face_count,
        time_range=time_range,
    )
