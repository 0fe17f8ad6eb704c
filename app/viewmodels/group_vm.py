from __future__ import annotations

from dataclasses import dataclass, field

from app.viewmodels.photo_vm import PhotoVM
from core.models import GroupType


@dataclass
class GroupVM:
    group_id: str
    name: str
    group_type: GroupType
    confidence_score: float
    similarity_score: float
    best_photo_id: str | None = None
    items: list[PhotoVM] = field(default_factory=list)
