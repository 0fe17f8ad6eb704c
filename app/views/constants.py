"""
UI/view constants centralized for reuse across view modules.

Column order here defines the tree model layout.
"""

from __future__ import annotations

from PySide6.QtCore import Qt

HEADERS: list[str] = [
    "Group",
    "Best",
    "File Name",
    "Score",
    "Recommendation",
    "Faces",
    "Group Count",
]

COL_GROUP: int = 0
COL_BEST: int = 1
COL_NAME: int = 2
COL_SCORE: int = 3
COL_RECOMMENDATION: int = 4
COL_FACES: int = 5
COL_GROUP_COUNT: int = 6
NUM_COLUMNS: int = 7


# Data roles
PHOTO_ID_ROLE: int = Qt.UserRole  # photo id on name item, group id on group item
SORT_ROLE: int = Qt.UserRole + 1  # used by QSortFilterProxyModel
