import pytest

from forumcore.errors import ValidationError
from forumcore.ratings import clamp_rating, estimate_rating, round_rating, summarize_ratings


def test_summary_of_three_ratings():
    assert summarize_ratings([4, 5, 3]) == (4.0, 3)


def test_summary_after_one_user_changes_rating():
    # user A moves from 4 to 2
    assert summarize_ratings([2, 5, 3]) == (3.3, 3)


def test_no_ratings():
    assert summarize_ratings([]) == (0.0, 0)


def test_rounding_is_half_up():
    assert round_rating(4.25) == 4.3
    assert round_rating(4.35) == 4.4
    assert summarize_ratings([1, 2, 2]) == (1.7, 3)


@pytest.mark.parametrize("value,expected", [(0, 1.0), (7, 5.0), (3.5, 3.5), (4, 4.0)])
def test_clamp(value, expected):
    assert clamp_rating(value) == expected


@pytest.mark.parametrize("value", [None, "abc", "4", True, float("nan")])
def test_clamp_rejects_non_numbers(value):
    with pytest.raises(ValidationError):
        clamp_rating(value)


def test_estimate_new_rating():
    assert estimate_rating(4.0, 2, None, 1) == (3.0, 3)


def test_estimate_changed_rating():
    assert estimate_rating(4.0, 3, 4, 2) == (3.3, 3)


def test_estimate_first_rating():
    assert estimate_rating(0.0, 0, None, 5) == (5.0, 1)
