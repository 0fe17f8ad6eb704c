import pytest

from conftest import make_group, make_photo
from core.errors import InvalidReference
from core.models import GroupType
from core.services.selection_service import BestPhotoSelector


def test_auto_best_uses_sort_order(beach_group):
    assert BestPhotoSelector().compute_auto_best(beach_group) == "P2"


def test_auto_best_of_empty_group_is_none():
    assert BestPhotoSelector().compute_auto_best(make_group("g", [])) is None


def test_session_best_spans_groups(beach_group, other_group):
    selector = BestPhotoSelector()
    assert selector.compute_session_best([beach_group, other_group]) == "P5"
    assert selector.compute_session_best([]) is None


def test_manual_best_moves_the_flag(beach_group, sink):
    selector = BestPhotoSelector(sink=sink)
    selector.apply_auto_best(beach_group)
    selector.set_manual_best(beach_group, "P1")

    assert beach_group.best_photo_id == "P1"
    flags = {p.id: p.is_selected_best for p in beach_group.photos}
    assert flags == {"P1": True, "P2": False, "P3": False}
    assert beach_group.group_type is GroupType.AUTO
    assert sink.updates[-1].action == "set_best"
    assert sink.updates[-1].payload == {"best_photo_id": "P1"}


def test_manual_best_on_non_member_is_rejected(beach_group, sink):
    selector = BestPhotoSelector(sink=sink)
    selector.set_manual_best(beach_group, "P3")
    sink.updates.clear()

    with pytest.raises(InvalidReference):
        selector.set_manual_best(beach_group, "P9")
    assert beach_group.best_photo_id == "P3"
    assert beach_group.find_photo("P3").is_selected_best
    assert sink.updates == []


def test_apply_auto_best_replaces_a_manual_pick(beach_group):
    selector = BestPhotoSelector()
    selector.set_manual_best(beach_group, "P1")
    assert selector.apply_auto_best(beach_group) == "P2"
    assert beach_group.best_photo_id == "P2"
    assert not beach_group.find_photo("P1").is_selected_best


def test_clear_best(beach_group):
    selector = BestPhotoSelector()
    selector.set_manual_best(beach_group, "P1")
    selector.clear_best(beach_group)
    assert beach_group.best_photo_id is None
    assert not any(p.is_selected_best for p in beach_group.photos)


def test_on_photo_added_policies():
    sticky = make_group("g", [make_photo("a", "a.jpg", quality=50), make_photo("b", "b.jpg", quality=60)])
    BestPhotoSelector().set_manual_best(sticky, "a")
    sticky.photos.append(make_photo("c", "c.jpg", quality=99))
    BestPhotoSelector(reconsider_on_change=False).on_photo_added(sticky)
    assert sticky.best_photo_id == "a"

    BestPhotoSelector(reconsider_on_change=True).on_photo_added(sticky)
    assert sticky.best_photo_id == "c"
