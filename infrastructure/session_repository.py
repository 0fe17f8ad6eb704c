"""JSON persistence for session snapshots (groups and their photos).

A snapshot file looks like::

    {"session_id": "...", "groups": [{"id": "...", "name": "...",
      "group_type": "auto", "confidence_score": 0.8, "similarity_score": 0.7,
      "best_photo_id": null, "metadata": {...}, "photos": [{...}]}]}

Malformed groups or photos are logged and skipped. A `best_photo_id` that does
not name a member is dropped on load.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime
import json
from pathlib import Path
from typing import Any

from loguru import logger

from core.errors import DetectionUnavailableError
from core.models import FaceDetection, GroupMetadata, GroupType, Photo, PhotoGroup, TimeRange
from core.services.clustering import GroupingOptions, build_auto_groups, cluster
from core.services.interfaces import IGroupingSource
from core.services.similarity import similarity_matrix
from infrastructure.detection_repository import JsonDetectionRepository


def _opt_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _opt_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    return datetime.fromisoformat(str(value))


def _parse_photo(row: dict[str, Any]) -> Photo:
    return Photo(
        id=str(row["id"]),
        file_url=str(row.get("file_url", "") or ""),
        original_filename=str(row.get("original_filename", "") or ""),
        quality_score=_opt_float(row.get("quality_score")),
        confidence_score=_opt_float(row.get("confidence_score")),
        is_selected_best=bool(row.get("is_selected_best", False)),
        taken_at=_opt_datetime(row.get("taken_at")),
        width=_opt_int(row.get("width")),
        height=_opt_int(row.get("height")),
    )


def _parse_metadata(raw: dict[str, Any] | None) -> GroupMetadata | None:
    if not raw:
        return None
    time_range = None
    tr = raw.get("time_range")
    if tr:
        time_range = TimeRange(
            start=datetime.fromisoformat(tr["start"]),
            end=datetime.fromisoformat(tr["end"]),
        )
    return GroupMetadata(
        dominant_colors=[str(c) for c in raw.get("dominant_colors", []) or []],
        average_brightness=_opt_float(raw.get("average_brightness")),
        face_count=_opt_int(raw.get("face_count")),
        time_range=time_range,
    )


def _photos(rows: Iterable[dict[str, Any]], group_id: str) -> list[Photo]:
    photos: list[Photo] = []
    for row in rows:
        try:
            photo = _parse_photo(row)
        except (ValueError, TypeError, KeyError) as ex:
            logger.error("Photo row error in group {}: {} | row={}", group_id, ex, row)
            continue
        photo.group_id = group_id
        photos.append(photo)
    return photos


def _parse_group(raw: dict[str, Any]) -> PhotoGroup:
    group_id = str(raw["id"])
    group = PhotoGroup(
        id=group_id,
        name=str(raw.get("name") or group_id),
        group_type=GroupType(raw.get("group_type", GroupType.AUTO.value)),
        confidence_score=float(raw.get("confidence_score", 0.0) or 0.0),
        similarity_score=float(raw.get("similarity_score", 0.0) or 0.0),
        photos=_photos(raw.get("photos", []) or [], group_id),
        metadata=_parse_metadata(raw.get("metadata")),
    )
    best = raw.get("best_photo_id")
    if best is not None and not group.has_photo(str(best)):
        logger.warning("Group {} best photo {} is not a member; cleared", group_id, best)
        best = None
    group.best_photo_id = str(best) if best is not None else None
    for photo in group.photos:
        photo.is_selected_best = photo.id == group.best_photo_id
    return group


def _dump_group(group: PhotoGroup) -> dict[str, Any]:
    meta = None
    if group.metadata is not None:
        m = group.metadata
        meta = {
            "dominant_colors": list(m.dominant_colors),
            "average_brightness": m.average_brightness,
            "face_count": m.face_count,
            "time_range": (
                {"start": m.time_range.start.isoformat(), "end": m.time_range.end.isoformat()}
                if m.time_range
                else None
            ),
        }
    return {
        "id": group.id,
        "name": group.name,
        "group_type": group.group_type.value,
        "confidence_score": group.confidence_score,
        "similarity_score": group.similarity_score,
        "best_photo_id": group.best_photo_id,
        "metadata": meta,
        "photos": [
            {
                "id": p.id,
                "file_url": p.file_url,
                "original_filename": p.original_filename,
                "quality_score": p.quality_score,
                "confidence_score": p.confidence_score,
                "is_selected_best": p.is_selected_best,
                "taken_at": p.taken_at.isoformat() if p.taken_at else None,
                "width": p.width,
                "height": p.height,
            }
            for p in group.photos
        ],
    }


class JsonSessionRepository(IGroupingSource):
    """Load and save session snapshots as `<base_dir>/<session_id>.json`."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir)

    def path_for(self, session_id: str) -> Path:
        return self._base / f"{session_id}.json"

    def load_groups(self, session_id: str) -> list[PhotoGroup]:
        return list(self.load(self.path_for(session_id)))

    def load(self, json_path: str | Path) -> Iterator[PhotoGroup]:
        """Yield `PhotoGroup` from the snapshot at `json_path`."""
        path = Path(json_path)
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get("groups"), list):
            raise ValueError(f"Snapshot {path} has no 'groups' list")

        for raw in data["groups"]:
            try:
                yield _parse_group(raw)
            except (ValueError, TypeError, KeyError) as ex:
                logger.error("Group row error: {} | row={}", ex, raw)
                continue

    def save(self, json_path: str | Path, groups: Iterable[PhotoGroup], session_id: str = "") -> None:
        """Write the snapshot to `json_path`."""
        path = Path(json_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        doc = {"session_id": session_id, "groups": [_dump_group(g) for g in groups]}
        with path.open("w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2)


class SimilarityGroupingSource(IGroupingSource):
    """Build auto groups by clustering `<base_dir>/<session_id>.similarity.json`.

    The file holds ``{"photos": [...], "matrix": [[...]]}`` with the matrix
    rows in the same order as the photos. Without a "matrix" the similarities
    are derived from the photos themselves (capture time, dimensions) and the
    faces in `<session_id>.faces.json`.
    """

    def __init__(self, base_dir: str | Path, options: GroupingOptions | None = None) -> None:
        self._base = Path(base_dir)
        self._options = options or GroupingOptions()

    def load_groups(self, session_id: str) -> list[PhotoGroup]:
        path = self._base / f"{session_id}.similarity.json"
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        photos = [_parse_photo(row) for row in data.get("photos", [])]
        matrix = data.get("matrix")
        if matrix is None:
            matrix = similarity_matrix(photos, self._faces(session_id), self._options)
        clusters = cluster([p.id for p in photos], matrix, self._options)
        return build_auto_groups(clusters, photos)

    def _faces(self, session_id: str) -> dict[str, list[FaceDetection]]:
        try:
            results = JsonDetectionRepository(self._base).fetch(session_id)
        except DetectionUnavailableError as ex:
            logger.warning("Grouping session {} without faces: {}", session_id, ex)
            return {}
        return {r.photo_id: r.faces for r in results if not r.unavailable}
