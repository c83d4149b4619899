"""
Advisory verdict on whether a requested enrollment count fits a class.

    max_capacity <= 0                          OK (no capacity configured)
    current + requested <= max                 OK
    over capacity, slots remaining             PARTIAL_SUGGESTED (suggest the remaining slots)
    over capacity, full, overage <= threshold  OVERRIDE_AVAILABLE
    over capacity, full, overage > threshold   BLOCKED

overage = (current + requested - max) / max, threshold defaults to
settings.ENROLLMENT_OVERRIDE_MAX_RATIO. The advice is not binding: the
executor re-checks capacity under the class lock before committing.
"""

from typing import Optional

from app.config.settings import settings
from app.schemas.enrollment_schemas import (
    ClassCapacitySnapshot,
    EnrollmentRecommendation,
    RecommendationType,
)

# Absorbs float error when the overage sits exactly on the threshold
_RATIO_TOLERANCE = 1e-9


def _students(count: int) -> str:
    return f"{count} student{'s' if count != 1 else ''}"


class CapacityAdvisor:
    def __init__(self, override_max_ratio: Optional[float] = None):
        ratio = (
            settings.ENROLLMENT_OVERRIDE_MAX_RATIO
            if override_max_ratio is None
            else override_max_ratio
        )
        if ratio < 0:
            raise ValueError("override_max_ratio must not be negative")
        self.override_max_ratio = ratio

    @staticmethod
    def overage_ratio(max_capacity: int, current_enrolled: int, requested_count: int) -> float:
        """How far past capacity the class would be, as a fraction of capacity"""
        if max_capacity <= 0:
            return 0.0
        excess = current_enrolled + requested_count - max_capacity
        return max(excess, 0) / max_capacity

    def within_override_limit(
        self, max_capacity: int, current_enrolled: int, requested_count: int
    ) -> bool:
        overage = self.overage_ratio(max_capacity, current_enrolled, requested_count)
        return overage <= self.override_max_ratio + _RATIO_TOLERANCE

    def recommend(
        self, max_capacity: int, current_enrolled: int, requested_count: int
    ) -> EnrollmentRecommendation:
        if current_enrolled < 0:
            raise ValueError(f"current_enrolled must not be negative (got {current_enrolled})")
        if requested_count < 0:
            raise ValueError(f"requested_count must not be negative (got {requested_count})")

        if max_capacity <= 0:
            return EnrollmentRecommendation(
                type=RecommendationType.OK,
                message=f"No capacity limit is configured; {_students(requested_count)} can be enrolled",
            )

        total = current_enrolled + requested_count
        remaining = max(max_capacity - current_enrolled, 0)
        if total <= max_capacity:
            return EnrollmentRecommendation(
                type=RecommendationType.OK,
                message=(
                    f"All {_students(requested_count)} fit: {total}/{max_capacity} "
                    f"after enrollment, {max_capacity - total} slot(s) left"
                ),
            )

        overage = self.overage_ratio(max_capacity, current_enrolled, requested_count)
        limit = f"{self.override_max_ratio:.0%}"
        overridable = self.within_override_limit(
            max_capacity, current_enrolled, requested_count
        )

        if remaining > 0:
            if overridable:
                override_note = (
                    f"enrolling all {requested_count} with an override puts the class "
                    f"{overage:.0%} over capacity, within the {limit} limit"
                )
            else:
                override_note = (
                    f"enrolling all {requested_count} would put the class "
                    f"{overage:.0%} over capacity, above the {limit} override limit"
                )
            return EnrollmentRecommendation(
                type=RecommendationType.PARTIAL_SUGGESTED,
                message=(
                    f"Only {remaining} of {requested_count} fit "
                    f"({current_enrolled}/{max_capacity} enrolled). "
                    f"Enroll {_students(remaining)} now; {override_note}"
                ),
                suggested_enroll_count=remaining,
            )

        if overridable:
            return EnrollmentRecommendation(
                type=RecommendationType.OVERRIDE_AVAILABLE,
                message=(
                    f"Class is full ({current_enrolled}/{max_capacity}). Enrolling "
                    f"{_students(requested_count)} puts it {overage:.0%} over capacity, "
                    f"within the {limit} override limit"
                ),
            )

        return EnrollmentRecommendation(
            type=RecommendationType.BLOCKED,
            message=(
                f"Class is full ({current_enrolled}/{max_capacity}). Enrolling "
                f"{_students(requested_count)} would put it {overage:.0%} over capacity, "
                f"above the {limit} override limit"
            ),
        )

    def recommend_for(
        self, snapshot: ClassCapacitySnapshot, requested_count: int
    ) -> EnrollmentRecommendation:
        return self.recommend(
            snapshot.max_capacity, snapshot.current_enrolled, requested_count
        )
