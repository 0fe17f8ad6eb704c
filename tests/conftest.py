import os

import pytest

from app.viewmodels.session_vm import SessionVM
from core.models import BoundingBox, FaceDetection, GroupType, Photo, PhotoGroup
from core.services.interfaces import MemorySink


def make_photo(photo_id, filename, quality=None, confidence=None):
    return Photo(
        id=photo_id,
        file_url=f"uploads/{filename}",
        original_filename=filename,
        quality_score=quality,
        confidence_score=confidence,
    )


def make_face(eyes_open=True, smile=0.8, expression="happy", expression_conf=0.9, quality=90.0):
    return FaceDetection(
        bounding_box=BoundingBox(x=0.1, y=0.1, width=0.2, height=0.2),
        confidence=0.95,
        eyes_open=eyes_open,
        smile_detected=smile is not None and smile > 0.5,
        smile_intensity=smile,
        expression=expression,
        expression_confidence=expression_conf,
        quality_score=quality,
    )


def make_group(group_id, photos, confidence=0.8, similarity=0.7, name=None, group_type=GroupType.AUTO):
    group = PhotoGroup(
        id=group_id,
        name=name or f"Group {group_id}",
        group_type=group_type,
        confidence_score=confidence,
        similarity_score=similarity,
        photos=list(photos),
    )
    for p in group.photos:
        p.group_id = group_id
    return group


@pytest.fixture
def beach_group():
    return make_group(
        "g1",
        [
            make_photo("P1", "beach.jpg", quality=88),
            make_photo("P2", "alpha.jpg", quality=91),
            make_photo("P3", "zeta.jpg", quality=91),
        ],
    )


@pytest.fixture
def other_group():
    return make_group(
        "g2",
        [make_photo("P4", "dinner_1.jpg", quality=70), make_photo("P5", "dinner_2.jpg", quality=95)],
        confidence=0.6,
        similarity=0.5,
    )


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def session(beach_group, other_group, sink):
    vm = SessionVM(sink=sink)
    vm.load([beach_group, other_group])
    return vm


@pytest.fixture(scope="session")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtGui import QGuiApplication

    app = QGuiApplication.instance() or QGuiApplication([])
    yield app
