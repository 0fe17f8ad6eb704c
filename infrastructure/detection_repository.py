"""Detection source reading face detection output from JSON files.

Expected document at `<base_dir>/<session_id>.faces.json`::

    {"results": [{"photo_id": "p1", "faces": [{"bounding_box": {"x": 0.1,
      "y": 0.2, "width": 0.1, "height": 0.1}, "confidence": 0.93,
      "eyes_open": true, "smile_detected": true, "smile_intensity": 0.8,
      "expression": "happy", "expression_confidence": 0.8,
      "quality_score": 84.5}]},
      {"photo_id": "p2", "error": "timeout"}]}

An entry with an "error" key, or with any malformed face, becomes an
unavailable result for that photo only.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from core.errors import DetectionUnavailableError
from core.models import EXPRESSIONS, BoundingBox, FaceDetection
from core.services.interfaces import DetectionResult, IDetectionSource


def _opt_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


def _opt_float(value: Any) -> float | None:
    return None if value is None else float(value)


def parse_face(raw: dict[str, Any]) -> FaceDetection:
    """Build a `FaceDetection` from one JSON face; raises on malformed input."""
    box = raw["bounding_box"]
    expression = raw.get("expression")
    if expression is not None and expression not in EXPRESSIONS:
        raise ValueError(f"Unknown expression: {expression}")
    return FaceDetection(
        bounding_box=BoundingBox(
            x=float(box["x"]),
            y=float(box["y"]),
            width=float(box["width"]),
            height=float(box["height"]),
        ),
        confidence=_opt_float(raw.get("confidence")),
        eyes_open=_opt_bool(raw.get("eyes_open")),
        smile_detected=_opt_bool(raw.get("smile_detected")),
        smile_intensity=_opt_float(raw.get("smile_intensity")),
        expression=expression,
        expression_confidence=_opt_float(raw.get("expression_confidence")),
        quality_score=_opt_float(raw.get("quality_score")),
    )


def parse_result(raw: dict[str, Any]) -> DetectionResult:
    photo_id = str(raw["photo_id"])
    if raw.get("error"):
        logger.warning("Detection unavailable for photo {}: {}", photo_id, raw["error"])
        return DetectionResult(photo_id=photo_id, unavailable=True)
    try:
        faces = [parse_face(f) for f in raw.get("faces", []) or []]
    except (ValueError, TypeError, KeyError) as ex:
        logger.error("Malformed detection for photo {}: {}", photo_id, ex)
        return DetectionResult(photo_id=photo_id, unavailable=True)
    return DetectionResult(photo_id=photo_id, faces=faces)


class JsonDetectionRepository(IDetectionSource):
    """Reads detection results for a session from JSON."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir)

    def path_for(self, session_id: str) -> Path:
        return self._base / f"{session_id}.faces.json"

    def fetch(self, session_id: str) -> list[DetectionResult]:
        """Return one result per listed photo.

        Raises:
            DetectionUnavailableError: The document is missing or unreadable.
        """
        path = self.path_for(session_id)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise DetectionUnavailableError(f"Cannot read detections {path}: {ex}") from ex
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise DetectionUnavailableError(f"Detections {path} have no 'results' list")

        results: list[DetectionResult] = []
        for raw in data["results"]:
            try:
                results.append(parse_result(raw))
            except (KeyError, TypeError) as ex:
                logger.error("Detection row error: {} | row={}", ex, raw)
                continue
        return results
