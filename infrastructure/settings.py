"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.services.clustering import GroupingOptions
from core.services.quality_service import QualityConfig, QualityWeights


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonSettings:
        """Build settings from an in-memory mapping."""
        obj = cls.__new__(cls)
        obj._path = None
        obj._data = data
        return obj

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


def quality_config(settings: JsonSettings) -> QualityConfig:
    """Build the aggregator config from `quality.*` keys."""
    defaults = QualityConfig()
    dw = defaults.weights
    weights = QualityWeights(
        eyes_open=float(settings.get("quality.weights.eyes_open", dw.eyes_open)),
        expression=float(settings.get("quality.weights.expression", dw.expression)),
        smile=float(settings.get("quality.weights.smile", dw.smile)),
        face_quality=float(settings.get("quality.weights.face_quality", dw.face_quality)),
    )
    raw_thresholds = settings.get("quality.rating_thresholds", list(defaults.rating_thresholds))
    if not isinstance(raw_thresholds, list) or len(raw_thresholds) != 3:
        raise ValueError(f"quality.rating_thresholds must be a list of 3 numbers: {raw_thresholds}")
    return QualityConfig(
        weights=weights,
        blur_cutoff=float(settings.get("quality.blur_cutoff", defaults.blur_cutoff)),
        poor_expression_threshold=float(
            settings.get("quality.poor_expression_threshold", defaults.poor_expression_threshold)
        ),
        rating_thresholds=tuple(float(v) for v in raw_thresholds),
    )


def grouping_options(settings: JsonSettings) -> GroupingOptions:
    """Build clustering limits and similarity weights from `grouping.*` keys."""
    d = GroupingOptions()
    opts = GroupingOptions(
        similarity_threshold=float(
            settings.get("grouping.similarity_threshold", d.similarity_threshold)
        ),
        max_group_size=int(settings.get("grouping.max_group_size", d.max_group_size)),
        min_group_size=int(settings.get("grouping.min_group_size", d.min_group_size)),
        temporal_weight=float(settings.get("grouping.weights.temporal", d.temporal_weight)),
        face_weight=float(settings.get("grouping.weights.faces", d.face_weight)),
        metadata_weight=float(settings.get("grouping.weights.metadata", d.metadata_weight)),
        temporal_decay_seconds=float(
            settings.get("grouping.temporal_decay_seconds", d.temporal_decay_seconds)
        ),
        burst_window_seconds=float(
            settings.get("grouping.burst_window_seconds", d.burst_window_seconds)
        ),
        burst_boost=float(settings.get("grouping.burst_boost", d.burst_boost)),
    )
    opts.validate()
    return opts


def reconsider_on_change(settings: JsonSettings) -> bool:
    return bool(settings.get("selection.reconsider_on_change", False))
