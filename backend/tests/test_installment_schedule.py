from datetime import date, datetime

import pytest

from salesdesk.errors import ValidationError
from salesdesk.services.installment_service import build_installment_schedule
from salesdesk.time_utils import add_months


def test_hundred_split_in_three_last_absorbs_remainder():
    schedule = build_installment_schedule(10000, 3, date(2026, 1, 15))

    assert [s.amount_cents for s in schedule] == [3333, 3333, 3334]
    assert [s.sequence for s in schedule] == [1, 2, 3]
    assert [s.due_date for s in schedule] == [
        date(2026, 2, 15),
        date(2026, 3, 15),
        date(2026, 4, 15),
    ]


@pytest.mark.parametrize("final_cents,count", [
    (4130, 3),
    (1, 1),
    (999_999, 7),
    (10001, 12),
    (5, 5),
])
def test_amounts_sum_exactly_to_final(final_cents, count):
    schedule = build_installment_schedule(final_cents, count, date(2026, 1, 1))

    assert len(schedule) == count
    assert sum(s.amount_cents for s in schedule) == final_cents
    # Only the last one may differ from the floor share
    floor_share = final_cents // count
    assert all(s.amount_cents == floor_share for s in schedule[:-1])
    assert schedule[-1].amount_cents >= floor_share


def test_due_dates_strictly_increasing_across_month_ends():
    schedule = build_installment_schedule(1200, 12, datetime(2026, 1, 31, 18, 0))

    dues = [s.due_date for s in schedule]
    assert dues[0] == date(2026, 2, 28)
    assert dues[1] == date(2026, 3, 31)
    assert dues[2] == date(2026, 4, 30)
    assert dues[-1] == date(2027, 1, 31)
    assert all(a < b for a, b in zip(dues, dues[1:]))


@pytest.mark.parametrize("count", [0, -1])
def test_rejects_non_positive_count(count):
    with pytest.raises(ValidationError):
        build_installment_schedule(10000, count, date(2026, 1, 1))


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)
    assert add_months(datetime(2025, 12, 15, 23, 59), 1) == date(2026, 1, 15)
