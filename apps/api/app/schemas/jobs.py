from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.catalog.jobs.auto_verification import VerificationReport


class UserVerificationOut(BaseModel):
    userId: str
    username: str
    reviewCount: int
    verified: bool
    notified: bool
    notificationError: Optional[str] = None


class VerificationReportOut(BaseModel):
    startedAt: datetime
    finishedAt: datetime
    candidates: int = Field(..., description="Unverified users old enough to qualify.")
    verifiedCount: int
    notificationFailures: int
    results: List[UserVerificationOut]

    @classmethod
    def from_report(cls, report: VerificationReport) -> "VerificationReportOut":
        return cls(
            startedAt=report.started_at,
            finishedAt=report.finished_at,
            candidates=report.candidates,
            verifiedCount=report.verified_count,
            notificationFailures=len(report.notification_failures),
            results=[
                UserVerificationOut(
                    userId=r.user_id,
                    username=r.username,
                    reviewCount=r.review_count,
                    verified=r.verified,
                    notified=r.notified,
                    notificationError=r.notification_error,
                )
                for r in report.results
            ],
        )
