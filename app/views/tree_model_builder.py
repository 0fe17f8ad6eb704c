from __future__ import annotations

from collections.abc import Iterable

from PySide6.QtCore import QSortFilterProxyModel, Qt
from PySide6.QtGui import QStandardItem, QStandardItemModel

from app.viewmodels.group_vm import GroupVM
from app.views.constants import (
    COL_BEST,
    COL_FACES,
    COL_GROUP,
    COL_GROUP_COUNT,
    COL_NAME,
    COL_RECOMMENDATION,
    COL_SCORE,
    HEADERS,
    PHOTO_ID_ROLE,
    SORT_ROLE,
)


def _item(text: str = "") -> QStandardItem:
    it = QStandardItem(text)
    it.setEditable(False)
    return it


def build_model(
    groups: Iterable[GroupVM],
) -> tuple[QStandardItemModel, QSortFilterProxyModel]:
    """Builds the tree model and a proxy for sorting with roles.

    Group rows carry the group id and photo count; child rows are the photos
    in display order, with the best photo checked in the "Best" column.
    """
    model = QStandardItemModel()
    model.setHorizontalHeaderLabels(HEADERS)

    for g in groups:
        group_item = _item(f"{g.name} ({g.group_type.value})")
        group_item.setData(g.group_id, PHOTO_ID_ROLE)
        group_item.setData(g.name.lower(), SORT_ROLE)

        group_row = [_item() for _ in HEADERS]
        group_row[COL_GROUP] = group_item
        group_row[COL_SCORE].setText(f"{g.confidence_score * 100:.0f}%")
        group_row[COL_SCORE].setData(float(g.confidence_score), SORT_ROLE)
        group_row[COL_GROUP_COUNT].setText(str(len(g.items)))
        group_row[COL_GROUP_COUNT].setData(len(g.items), SORT_ROLE)
        model.appendRow(group_row)

        for rank, p in enumerate(g.items):
            child_row = [_item() for _ in HEADERS]
            best = child_row[COL_BEST]
            best.setCheckable(True)
            best.setCheckState(Qt.Checked if p.photo_id == g.best_photo_id else Qt.Unchecked)

            child_row[COL_NAME].setText(p.file_name)
            child_row[COL_NAME].setData(p.photo_id, PHOTO_ID_ROLE)
            child_row[COL_NAME].setData(p.file_name, SORT_ROLE)
            child_row[COL_SCORE].setText(f"{p.score:.2f}")
            child_row[COL_SCORE].setData(float(p.score), SORT_ROLE)
            child_row[COL_RECOMMENDATION].setText(p.recommendation)
            child_row[COL_FACES].setText(p.faces_text)
            child_row[COL_FACES].setData(p.faces_selected, SORT_ROLE)
            child_row[COL_GROUP].setData(rank, SORT_ROLE)
            group_item.appendRow(child_row)

    proxy = QSortFilterProxyModel()
    proxy.setSortRole(SORT_ROLE)
    proxy.setSortCaseSensitivity(Qt.CaseInsensitive)
    proxy.setSourceModel(model)

    return model, proxy
