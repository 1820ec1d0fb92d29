from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta
from unittest.mock import MagicMock

import pytest

import src.catalog.jobs.auto_verification as mod
from src.catalog.data.mongo import USERS, utc_now
from src.catalog.jobs.auto_verification import (
    AutoVerificationScheduler,
    run_auto_verification,
    seconds_until,
)


def _attach_caplog_to_logger(caplog, logger: logging.Logger) -> None:
    logger.addHandler(caplog.handler)


def _detach_caplog_from_logger(caplog, logger: logging.Logger) -> None:
    logger.removeHandler(caplog.handler)


def _has_event(caplog, event_name: str) -> bool:
    return any(getattr(rec, "event", None) == event_name for rec in caplog.records)


def _give_reviews(make_entity, make_review, user, count):
    for _ in range(count):
        make_review(user["_id"], make_entity()["_id"], 7)


def _is_verified(db, user) -> bool:
    return db[USERS].find_one({"_id": user["_id"]})["verified"]


def _set_created_at(db, user, created_at: datetime) -> None:
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"createdAt": created_at}})


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

def test_active_old_account_gets_verified_and_notified(db, notifier, make_user, make_entity, make_review, caplog):
    user = make_user(age_days=31)
    _give_reviews(make_entity, make_review, user, 5)

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        report = run_auto_verification(db, notifier)
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert report.candidates == 1
    assert report.verified_count == 1
    assert report.verified[0].notified is True
    assert _is_verified(db, user)

    stored = db[USERS].find_one({"_id": user["_id"]})
    assert stored["verifiedAt"] is not None
    assert "5+ reviews" in stored["verificationNote"]

    assert len(notifier.sent) == 1
    message = notifier.sent[0]
    assert message["to"] == user["email"]
    assert message["template"] == "auto_verification"
    assert message["data"]["reviewCount"] == 5
    assert message["data"]["username"] == user["username"]

    assert _has_event(caplog, "verification.started")
    assert _has_event(caplog, "verification.user_verified")
    assert _has_event(caplog, "verification.completed")


def test_too_few_reviews_is_not_verified(db, notifier, make_user, make_entity, make_review):
    user = make_user(age_days=90)
    _give_reviews(make_entity, make_review, user, 4)

    report = run_auto_verification(db, notifier)

    assert report.candidates == 1
    assert report.verified_count == 0
    assert report.results[0].review_count == 4
    assert not _is_verified(db, user)
    assert notifier.sent == []


def test_young_account_is_not_a_candidate(db, notifier, make_user, make_entity, make_review):
    user = make_user(age_days=29)
    _give_reviews(make_entity, make_review, user, 12)

    report = run_auto_verification(db, notifier)

    assert report.candidates == 0
    assert not _is_verified(db, user)


def test_account_exactly_at_both_thresholds_is_verified(db, notifier, make_user, make_entity, make_review):
    now = datetime(2024, 6, 1, 12, 0, 0)
    on_the_line = make_user()
    _set_created_at(db, on_the_line, now - timedelta(days=30))
    _give_reviews(make_entity, make_review, on_the_line, 5)
    just_short = make_user()
    _set_created_at(db, just_short, now - timedelta(days=30) + timedelta(milliseconds=1))
    _give_reviews(make_entity, make_review, just_short, 5)

    report = run_auto_verification(db, notifier, now=now)

    assert report.candidates == 1
    assert [r.username for r in report.verified] == [on_the_line["username"]]
    assert report.verified[0].review_count == 5
    assert _is_verified(db, on_the_line)
    assert not _is_verified(db, just_short)


def test_thresholds_are_configurable(db, notifier, make_user, make_entity, make_review):
    user = make_user(age_days=3)
    _give_reviews(make_entity, make_review, user, 2)

    report = run_auto_verification(db, notifier, min_account_age_days=1, min_review_count=2)

    assert report.verified_count == 1
    assert _is_verified(db, user)


def test_sweep_never_unverifies(db, notifier, make_user):
    user = make_user(age_days=400, verified=True)

    report = run_auto_verification(db, notifier)

    assert report.candidates == 0
    assert _is_verified(db, user)


def test_second_sweep_is_a_no_op(db, notifier, make_user, make_entity, make_review):
    user = make_user(age_days=45)
    _give_reviews(make_entity, make_review, user, 6)

    first = run_auto_verification(db, notifier)
    second = run_auto_verification(db, notifier)

    assert first.verified_count == 1
    assert second.candidates == 0
    assert second.verified_count == 0
    assert len(notifier.sent) == 1


def test_notification_failure_is_recorded_and_user_stays_verified(
    db, notifier, make_user, make_entity, make_review, caplog
):
    unlucky = make_user(age_days=60)
    lucky = make_user(age_days=60)
    _give_reviews(make_entity, make_review, unlucky, 5)
    _give_reviews(make_entity, make_review, lucky, 5)
    notifier.fail_for = {unlucky["email"]}

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        report = run_auto_verification(db, notifier)
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert report.verified_count == 2
    assert [r.user_id for r in report.notification_failures] == [str(unlucky["_id"])]
    assert "SMTP unavailable" in report.notification_failures[0].notification_error
    assert _is_verified(db, unlucky)
    assert _is_verified(db, lucky)
    assert [m["to"] for m in notifier.sent] == [lucky["email"]]
    assert _has_event(caplog, "verification.notification_failed")


def test_persistence_errors_propagate(notifier):
    fake_db = MagicMock()
    fake_db.__getitem__.return_value.find.side_effect = RuntimeError("database down")

    with pytest.raises(RuntimeError, match="database down"):
        run_auto_verification(fake_db, notifier)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 5, 1, 1, 0), 3600),
        (datetime(2024, 5, 1, 3, 0), 23 * 3600),
        (datetime(2024, 5, 1, 2, 0), 24 * 3600),
    ],
)
def test_seconds_until_next_run(now, expected):
    assert seconds_until(time(hour=2, minute=0), now) == expected


def test_scheduler_runs_sweep_and_stops(db, notifier, make_user, make_entity, make_review, caplog):
    now = datetime(2024, 5, 1, 1, 59, 59, 990000)
    user = make_user()
    _set_created_at(db, user, now - timedelta(days=31))
    _give_reviews(make_entity, make_review, user, 5)

    async def scenario():
        scheduler = AutoVerificationScheduler(
            db,
            notifier,
            run_at=time(hour=2, minute=0),
            clock=lambda: now,
        )
        scheduler.start()
        assert scheduler.running

        for _ in range(300):
            if scheduler.last_report is not None:
                break
            await asyncio.sleep(0.01)

        await scheduler.stop()
        return scheduler

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        scheduler = asyncio.run(scenario())
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert scheduler.running is False
    assert scheduler.last_report is not None
    assert _is_verified(db, user)
    assert _has_event(caplog, "verification.scheduler_started")
    assert _has_event(caplog, "verification.scheduled")
    assert _has_event(caplog, "verification.scheduler_stopped")


def test_scheduler_start_is_idempotent(db, notifier):
    async def scenario():
        scheduler = AutoVerificationScheduler(db, notifier)
        first = scheduler.start()
        second = scheduler.start()
        await scheduler.stop()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second


def test_run_once_keeps_last_report(db, notifier):
    scheduler = AutoVerificationScheduler(db, notifier)

    report = asyncio.run(scheduler.run_once())

    assert scheduler.last_report is report
    assert report.candidates == 0


def test_run_once_uses_the_scheduler_clock(db, notifier, make_user, make_entity, make_review):
    ahead = utc_now().replace(microsecond=0) + timedelta(days=40)
    user = make_user(age_days=10)
    _give_reviews(make_entity, make_review, user, 5)
    scheduler = AutoVerificationScheduler(db, notifier, clock=lambda: ahead)

    report = asyncio.run(scheduler.run_once())

    assert report.started_at == ahead
    assert report.verified_count == 1
    assert _is_verified(db, user)
