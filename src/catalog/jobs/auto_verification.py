"""
Periodic promotion of active users to verified status.

A user is eligible once the account is at least ``min_account_age_days`` old
and has written at least ``min_review_count`` reviews. Verification is one-way
and the sweep is idempotent: verified users drop out of the candidate set and
the write itself is conditional on ``verified: false``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional

from pymongo.database import Database

from src.catalog.data.mongo import REVIEWS, USERS, utc_now
from src.catalog.logging_utils import configure_logger
from src.catalog.notifications.email import Notifier

logger = configure_logger(__name__)

MIN_ACCOUNT_AGE_DAYS = 30
MIN_REVIEW_COUNT = 5
NOTIFICATION_TEMPLATE = "auto_verification"
NOTIFICATION_SUBJECT = "Account Automatically Verified - Screen Catalog"


def verification_note(min_review_count: int, min_account_age_days: int) -> str:
    return (
        f"Auto-verified: Active user with {min_review_count}+ reviews "
        f"and {min_account_age_days}+ days membership"
    )


@dataclass(frozen=True)
class UserVerificationResult:
    user_id: str
    username: str
    review_count: int
    verified: bool
    notified: bool = False
    notification_error: Optional[str] = None


@dataclass(frozen=True)
class VerificationReport:
    started_at: datetime
    finished_at: datetime
    candidates: int
    results: List[UserVerificationResult] = field(default_factory=list)

    @property
    def verified(self) -> List[UserVerificationResult]:
        return [r for r in self.results if r.verified]

    @property
    def verified_count(self) -> int:
        return len(self.verified)

    @property
    def notification_failures(self) -> List[UserVerificationResult]:
        return [r for r in self.results if r.verified and r.notification_error is not None]


def run_auto_verification(
    db: Database,
    notifier: Notifier,
    now: Optional[datetime] = None,
    min_account_age_days: int = MIN_ACCOUNT_AGE_DAYS,
    min_review_count: int = MIN_REVIEW_COUNT,
) -> VerificationReport:
    """
    Run one verification sweep and report what happened to every candidate.

    Persistence errors propagate to the caller. Notification errors are caught
    per user and recorded in the report; they never undo a verification.
    """
    started_at = now or utc_now()
    cutoff = started_at - timedelta(days=min_account_age_days)
    note = verification_note(min_review_count, min_account_age_days)

    logger.info("Auto-verification sweep started", extra={"event": "verification.started"})

    candidates = list(
        db[USERS].find(
            {"verified": False, "createdAt": {"$lte": cutoff}},
            {"_id": 1, "username": 1, "email": 1, "createdAt": 1},
        )
    )

    results: List[UserVerificationResult] = []
    for user in candidates:
        user_id = user["_id"]
        username = user.get("username", "")
        review_count = db[REVIEWS].count_documents({"user": user_id})

        if review_count < min_review_count:
            results.append(
                UserVerificationResult(
                    user_id=str(user_id), username=username, review_count=review_count, verified=False
                )
            )
            continue

        update = db[USERS].update_one(
            {"_id": user_id, "verified": False},
            {"$set": {"verified": True, "verifiedAt": started_at, "verificationNote": note}},
        )
        if update.modified_count == 0:
            # Verified concurrently by another run or an admin.
            results.append(
                UserVerificationResult(
                    user_id=str(user_id), username=username, review_count=review_count, verified=False
                )
            )
            continue

        logger.info(
            "User auto-verified",
            extra={"event": "verification.user_verified", "user_id": str(user_id), "review_count": review_count},
        )

        notified, notification_error = True, None
        created_at = user.get("createdAt")
        try:
            notifier.send(
                user.get("email", ""),
                NOTIFICATION_SUBJECT,
                NOTIFICATION_TEMPLATE,
                {
                    "username": username,
                    "reviewCount": review_count,
                    "memberSince": created_at.strftime("%Y-%m-%d") if created_at else "",
                },
            )
        except Exception as exc:
            notified, notification_error = False, str(exc) or type(exc).__name__
            logger.error(
                "Verification email failed",
                extra={
                    "event": "verification.notification_failed",
                    "user_id": str(user_id),
                    "error_type": type(exc).__name__,
                },
            )

        results.append(
            UserVerificationResult(
                user_id=str(user_id),
                username=username,
                review_count=review_count,
                verified=True,
                notified=notified,
                notification_error=notification_error,
            )
        )

    report = VerificationReport(
        started_at=started_at,
        finished_at=utc_now(),
        candidates=len(candidates),
        results=results,
    )
    logger.info(
        "Auto-verification sweep completed",
        extra={
            "event": "verification.completed",
            "candidates": report.candidates,
            "verified_count": report.verified_count,
            "notification_failures": len(report.notification_failures),
        },
    )
    return report


def seconds_until(run_at: time, now: datetime) -> float:
    """Seconds from ``now`` (naive UTC) until the next ``run_at`` wall-clock time."""
    target = datetime.combine(now.date(), run_at)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class AutoVerificationScheduler:
    """
    Long-lived asyncio task that runs the sweep once a day at ``run_at`` (UTC).

    Owned by the application lifespan through ``start`` / ``stop``. The sweep
    itself is blocking pymongo work and runs in a worker thread.
    """

    def __init__(
        self,
        db: Database,
        notifier: Notifier,
        run_at: time = time(hour=2, minute=0),
        min_account_age_days: int = MIN_ACCOUNT_AGE_DAYS,
        min_review_count: int = MIN_REVIEW_COUNT,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._notifier = notifier
        self._run_at = run_at
        self._min_account_age_days = min_account_age_days
        self._min_review_count = min_review_count
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[VerificationReport] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> VerificationReport:
        report = await asyncio.to_thread(
            run_auto_verification,
            self._db,
            self._notifier,
            self._clock(),
            self._min_account_age_days,
            self._min_review_count,
        )
        self.last_report = report
        return report

    async def _loop(self) -> None:
        while True:
            delay = seconds_until(self._run_at, self._clock())
            logger.info(
                "Next auto-verification sweep scheduled",
                extra={"event": "verification.scheduled", "seconds_until_run": round(delay, 1)},
            )
            await asyncio.sleep(delay)
            try:
                await self.run_once()
            except Exception:
                logger.exception(
                    "Auto-verification sweep failed",
                    extra={"event": "verification.failed"},
                )

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Auto-verification scheduler started",
            extra={"event": "verification.scheduler_started"},
        )
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info(
                "Auto-verification scheduler stopped",
                extra={"event": "verification.scheduler_stopped"},
            )
