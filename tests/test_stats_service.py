import pytest

from conftest import make_group
from core.services.stats_service import group_summary, session_stats


def test_zero_groups_yield_zero_averages():
    stats = session_stats([])
    assert stats.total_photos == 0
    assert stats.total_groups == 0
    assert stats.avg_confidence == 0
    assert stats.avg_similarity == 0


def test_totals_and_means(beach_group, other_group):
    stats = session_stats([beach_group, other_group])
    assert stats.total_photos == 5
    assert stats.total_groups == 2
    assert stats.avg_confidence == pytest.approx(0.7)
    assert stats.avg_similarity == pytest.approx(0.6)


def test_stats_follow_mutation(beach_group, other_group):
    groups = [beach_group, other_group]
    assert session_stats(groups).total_photos == 5
    beach_group.photos.pop()
    groups.append(make_group("g3", [], confidence=0.1, similarity=0.1))
    stats = session_stats(groups)
    assert stats.total_photos == 4
    assert stats.total_groups == 3
    assert stats.avg_confidence == pytest.approx(0.5)


def test_group_summary(beach_group):
    summary = group_summary(beach_group)
    assert summary.photo_count == 3
    assert summary.avg_score == pytest.approx((88 + 91 + 91) / 3)
    assert summary.best_photo_id is None
    assert group_summary(make_group("e", [])).avg_score == 0.0
