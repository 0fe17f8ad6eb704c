import pytest

from core.services.face_selection import FaceSelectionRegistry


def test_fresh_reset_includes_every_face():
    reg = FaceSelectionRegistry()
    reg.reset_for_photo("p1", 3)
    assert [reg.is_included("p1", i) for i in range(3)] == [True, True, True]
    assert reg.count_selected("p1") == 3
    assert reg.count_total("p1") == 3


def test_unknown_photo_defaults_to_included():
    reg = FaceSelectionRegistry()
    assert reg.is_included("nope", 7) is True
    assert reg.count_total("nope") == 0


def test_set_inclusion_is_idempotent_upsert():
    reg = FaceSelectionRegistry()
    reg.reset_for_photo("p1", 2)
    reg.set_inclusion("p1", 1, False)
    reg.set_inclusion("p1", 1, False)
    assert reg.is_included("p1", 1) is False
    assert reg.count_selected("p1") == 1
    reg.set_inclusion("p1", 1, True)
    assert reg.count_selected("p1") == 2


def test_reset_discards_stale_indices():
    reg = FaceSelectionRegistry()
    reg.reset_for_photo("p1", 4)
    reg.set_inclusion("p1", 0, False)
    reg.set_inclusion("p1", 3, False)
    reg.reset_for_photo("p1", 2)
    assert reg.is_included("p1", 0) is True
    assert reg.count_total("p1") == 2
    assert reg.count_selected("p1") == 2


def test_entries_outside_latest_pass_do_not_count():
    reg = FaceSelectionRegistry()
    reg.reset_for_photo("p1", 2)
    reg.set_inclusion("p1", 5, False)
    assert reg.count_selected("p1") == 2


def test_photos_are_independent_and_totals_sum():
    reg = FaceSelectionRegistry()
    reg.reset_for_photo("a", 2)
    reg.reset_for_photo("b", 3)
    reg.set_inclusion("b", 0, False)
    assert reg.count_selected("a") == 2
    assert reg.totals() == (4, 5)
    reg.forget("b")
    assert reg.totals() == (2, 2)


def test_negative_face_count_rejected():
    with pytest.raises(ValueError):
        FaceSelectionRegistry().reset_for_photo("p1", -1)
