from datetime import datetime

import pytest

from conftest import make_group, make_photo
from core.errors import InvalidReference, NotFoundError
from core.models import GroupMetadata, GroupType, TimeRange
from core.services.group_service import GroupService
from core.services.selection_service import BestPhotoSelector


@pytest.fixture
def groups(beach_group, other_group):
    return {beach_group.id: beach_group, other_group.id: other_group}


@pytest.fixture
def service(sink):
    ids = iter(["m1", "m2", "m3"])
    return GroupService(sink=sink, id_factory=lambda: next(ids))


def test_rename(beach_group, service, sink):
    service.rename(beach_group, "  Beach day ")
    assert beach_group.name == "Beach day"
    assert sink.updates[-1].action == "rename"
    assert sink.updates[-1].payload == {"name": "Beach day"}


def test_rename_rejects_blank(beach_group, service):
    with pytest.raises(ValueError):
        service.rename(beach_group, "   ")
    assert beach_group.name == "Group g1"


def test_move_photo_transfers_membership(groups, service, sink):
    service.move_photo(groups, "P1", "g1", "g2")
    assert not groups["g1"].has_photo("P1")
    assert groups["g2"].photos[-1].id == "P1"
    assert groups["g2"].photos[-1].group_id == "g2"
    assert sink.updates[-1].action == "move"
    assert sink.updates[-1].payload == {"from_group_id": "g1", "to_group_id": "g2"}


def test_moving_the_best_photo_clears_source_best(groups, service):
    BestPhotoSelector().set_manual_best(groups["g1"], "P2")
    service.move_photo(groups, "P2", "g1", "g2")
    assert groups["g1"].best_photo_id is None
    assert not groups["g2"].find_photo("P2").is_selected_best


@pytest.mark.parametrize(
    "photo_id, src, dst",
    [("P1", "missing", "g2"), ("P1", "g1", "missing"), ("P4", "g1", "g2")],
)
def test_move_photo_not_found_leaves_state(groups, service, sink, photo_id, src, dst):
    before = {gid: [p.id for p in g.photos] for gid, g in groups.items()}
    with pytest.raises(NotFoundError):
        service.move_photo(groups, photo_id, src, dst)
    assert {gid: [p.id for p in g.photos] for gid, g in groups.items()} == before
    assert sink.updates == []


def test_move_reconsiders_destination_when_enabled(groups, sink):
    selector = BestPhotoSelector(reconsider_on_change=True)
    service = GroupService(selector=selector, sink=sink)
    selector.set_manual_best(groups["g2"], "P4")
    service.move_photo(groups, "P2", "g1", "g2")
    assert groups["g2"].best_photo_id == "P5"


def test_remove_best_photo_leaves_group_without_best(beach_group, service):
    BestPhotoSelector().set_manual_best(beach_group, "P2")
    removed = service.remove_photo(beach_group, "P2")
    assert removed.group_id is None
    assert beach_group.best_photo_id is None
    assert [p.id for p in beach_group.photos] == ["P1", "P3"]


def test_remove_with_replacement(beach_group, service):
    BestPhotoSelector().set_manual_best(beach_group, "P2")
    service.remove_photo(beach_group, "P2", replacement_id="P1")
    assert beach_group.best_photo_id == "P1"
    assert beach_group.find_photo("P1").is_selected_best


def test_remove_with_bad_replacement_changes_nothing(beach_group, service):
    BestPhotoSelector().set_manual_best(beach_group, "P2")
    with pytest.raises(InvalidReference):
        service.remove_photo(beach_group, "P2", replacement_id="P2")
    with pytest.raises(InvalidReference):
        service.remove_photo(beach_group, "P2", replacement_id="P9")
    assert beach_group.has_photo("P2")
    assert beach_group.best_photo_id == "P2"


def test_remove_unknown_photo(beach_group, service):
    with pytest.raises(NotFoundError):
        service.remove_photo(beach_group, "P9")


def test_merge_union_type_and_order(beach_group, other_group, service):
    merged = service.merge(beach_group, other_group)
    assert merged.id == "m1"
    assert merged.group_type is GroupType.MERGED
    assert sorted(p.id for p in merged.photos) == ["P1", "P2", "P3", "P4", "P5"]
    assert [p.id for p in merged.photos] == ["P5", "P2", "P3", "P1", "P4"]
    assert all(p.group_id == "m1" for p in merged.photos)


def test_merge_takes_minimum_scores(beach_group, other_group, service):
    merged = service.merge(beach_group, other_group)
    assert merged.confidence_score == pytest.approx(0.6)
    assert merged.similarity_score == pytest.approx(0.5)


def test_merge_has_no_duplicates():
    shared = make_photo("s", "shared.jpg", quality=10)
    a = make_group("a", [shared, make_photo("x", "x.jpg")])
    b = make_group("b", [shared])
    merged = GroupService().merge(a, b)
    assert sorted(p.id for p in merged.photos) == ["s", "x"]


def test_merge_name_and_best_follow_higher_confidence(beach_group, other_group, service):
    selector = BestPhotoSelector()
    selector.set_manual_best(beach_group, "P1")
    selector.set_manual_best(other_group, "P5")
    merged = service.merge(other_group, beach_group)
    assert merged.name == beach_group.name
    assert merged.best_photo_id == "P1"
    assert [p.id for p in merged.photos if p.is_selected_best] == ["P1"]


def test_merge_explicit_name(beach_group, other_group, service, sink):
    merged = service.merge(beach_group, other_group, name="Everything")
    assert merged.name == "Everything"
    assert sink.updates[-1].action == "merge"
    assert sink.updates[-1].payload["source_group_ids"] == ["g1", "g2"]


def test_merge_with_itself_rejected(beach_group, service):
    with pytest.raises(InvalidReference):
        service.merge(beach_group, beach_group)


def test_merge_combines_metadata(beach_group, other_group, service):
    beach_group.metadata = GroupMetadata(
        dominant_colors=["#fff", "#000"],
        average_brightness=0.6,
        face_count=3,
        time_range=TimeRange(datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 1, 10, 5)),
    )
    other_group.metadata = GroupMetadata(
        dominant_colors=["#000", "#f00"],
        average_brightness=0.1,
        face_count=2,
        time_range=TimeRange(datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 9, 1)),
    )
    meta = service.merge(beach_group, other_group).metadata
    assert meta.dominant_colors == ["#fff", "#000", "#f00"]
    assert meta.face_count == 5
    assert meta.average_brightness == pytest.approx((0.6 * 3 + 0.1 * 2) / 5)
    assert meta.time_range.start == datetime(2024, 1, 1, 9, 0)
    assert meta.time_range.end == datetime(2024, 1, 1, 10, 5)


def test_create_manual_group(groups, service):
    BestPhotoSelector().set_manual_best(groups["g1"], "P2")
    group = service.create_manual_group(groups, "Favourites", ["P2", "P5", "P2"])
    assert group.group_type is GroupType.MANUAL
    assert group.confidence_score == 1.0
    assert [p.id for p in group.photos] == ["P2", "P5"]
    assert groups[group.id] is group
    assert groups["g1"].best_photo_id is None
    assert not groups["g2"].has_photo("P5")


def test_create_manual_group_with_unknown_photo(groups, service):
    with pytest.raises(NotFoundError):
        service.create_manual_group(groups, "X", ["P1", "P9"])
    assert groups["g1"].has_photo("P1")
    assert len(groups) == 2


def test_moving_the_best_photo_is_one_update(groups, service, sink):
    BestPhotoSelector().set_manual_best(groups["g1"], "P1")
    service.move_photo(groups, "P1", "g1", "g2")
    assert len(sink.updates) == 1
    update = sink.updates[0]
    assert (update.action, update.group_id, update.photo_id) == ("move", "g2", "P1")
    assert update.payload["source_best_photo_id"] is None
    assert "best_photo_id" not in update.payload


def test_reconsidered_move_is_one_update(groups, sink):
    selector = BestPhotoSelector(reconsider_on_change=True)
    service = GroupService(selector=selector, sink=sink)
    selector.set_manual_best(groups["g2"], "P4", emit=False)
    service.move_photo(groups, "P2", "g1", "g2")
    assert [u.action for u in sink.updates] == ["move"]
    assert sink.updates[0].payload["best_photo_id"] == "P5"


@pytest.mark.parametrize("replacement, expected", [(None, None), ("P1", "P1")])
def test_removing_the_best_photo_is_one_update(beach_group, service, sink, replacement, expected):
    BestPhotoSelector().set_manual_best(beach_group, "P2")
    service.remove_photo(beach_group, "P2", replacement_id=replacement)
    assert len(sink.updates) == 1
    assert sink.updates[0].action == "delete"
    assert sink.updates[0].payload == {"best_photo_id": expected}


def test_removing_other_photo_leaves_best_out_of_payload(beach_group, service, sink):
    BestPhotoSelector().set_manual_best(beach_group, "P2")
    service.remove_photo(beach_group, "P1")
    assert [(u.action, u.payload) for u in sink.updates] == [("delete", {})]


def test_manual_group_is_one_update(groups, service, sink):
    BestPhotoSelector().set_manual_best(groups["g1"], "P2")
    BestPhotoSelector().set_manual_best(groups["g2"], "P5")
    service.create_manual_group(groups, "Favourites", ["P2", "P5", "P1"])
    assert len(sink.updates) == 1
    update = sink.updates[0]
    assert update.action == "create"
    assert update.payload["photo_ids"] == ["P2", "P5", "P1"]
    assert update.payload["cleared_best_group_ids"] == ["g1", "g2"]
