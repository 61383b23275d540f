import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

from sqlchat.services.usage import UsageGovernor


def test_fresh_user_has_full_quota(app_db):
    governor = UsageGovernor(app_db=app_db, daily_limit=3)
    assert governor.current_count(1) == 0
    assert governor.remaining_queries(1) == 3
    assert not governor.has_exceeded_limit(1)


def test_limit_reached_at_equality(app_db):
    governor = UsageGovernor(app_db=app_db, daily_limit=3)
    for expected in (1, 2, 3):
        assert governor.increment(1) == expected

    assert governor.has_exceeded_limit(1)
    assert governor.remaining_queries(1) == 0


def test_counts_are_per_user(app_db):
    governor = UsageGovernor(app_db=app_db, daily_limit=3)
    governor.increment(1)
    assert governor.current_count(2) == 0


def test_new_day_resets_count(app_db):
    day = {"value": date(2024, 5, 1)}
    governor = UsageGovernor(app_db=app_db, daily_limit=1, today=lambda: day["value"])
    governor.increment(1)
    assert governor.has_exceeded_limit(1)

    day["value"] += timedelta(days=1)
    assert not governor.has_exceeded_limit(1)
    assert governor.increment(1) == 1


def test_separate_governors_share_the_counter(app_db):
    first = UsageGovernor(app_db=app_db, daily_limit=10)
    second = UsageGovernor(app_db=app_db, daily_limit=10)
    first.increment(1)
    second.increment(1)
    assert first.current_count(1) == 2


def test_concurrent_first_increments_of_the_day(app_db):
    governor = UsageGovernor(app_db=app_db, daily_limit=100, today=lambda: date(2024, 5, 1))
    # all threads find no row for the day and race to create it
    start = threading.Barrier(8, timeout=30)

    def bump(_):
        start.wait()
        return governor.increment(1)

    with ThreadPoolExecutor(max_workers=8) as pool:
        counts = list(pool.map(bump, range(8)))

    assert governor.current_count(1) == 8
    assert max(counts) == 8


def test_concurrent_increments_on_existing_row(app_db):
    governor = UsageGovernor(app_db=app_db, daily_limit=100, today=lambda: date(2024, 5, 1))
    governor.increment(1)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: governor.increment(1), range(24)))

    assert governor.current_count(1) == 25
