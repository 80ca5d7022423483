"""Scoring rules for exam attempts.

Everything in here is a pure function over plain values so the rules can be
exercised without a database. The lifecycle service feeds it rows and writes
the results back.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_QUANTUM = Decimal("0.01")

# Question type groups; exams.models.Question reads these, every type belongs to exactly one.
AUTO_GRADED = ("multiple-choice", "true-false")
MANUALLY_GRADED = ("descriptive", "coding")


@dataclass(frozen=True)
class NegativeMarking:
    enabled: bool = False
    marks_per_wrong: Decimal = ZERO

    @property
    def penalty(self) -> Decimal:
        return -Decimal(self.marks_per_wrong) if self.enabled else ZERO


@dataclass(frozen=True)
class AnswerSheetItem:
    """One answer as the grader sees it."""
    question_id: int
    question_type: str
    payload: object
    points: Decimal
    correct_option: Optional[str] = None


@dataclass(frozen=True)
class AnswerGrade:
    question_id: int
    is_correct: bool
    marks_obtained: Decimal


@dataclass(frozen=True)
class GradingOutcome:
    grades: List[AnswerGrade]
    total: Decimal
    needs_manual_review: bool


@dataclass(frozen=True)
class ResultSummary:
    percentage: Optional[Decimal]
    is_passed: bool


def grade_objective(item: AnswerSheetItem, policy: NegativeMarking) -> AnswerGrade:
    # Exact comparison; an unanswered (None) payload never matches and is wrong.
    if item.correct_option is not None and item.payload == item.correct_option:
        return AnswerGrade(item.question_id, True, Decimal(item.points))
    return AnswerGrade(item.question_id, False, policy.penalty)


def auto_grade(items: Iterable[AnswerSheetItem], policy: NegativeMarking) -> GradingOutcome:
    """Grade every objective answer; subjective answers are left at zero."""
    grades = []
    needs_manual_review = False
    for item in items:
        if item.question_type in AUTO_GRADED:
            grades.append(grade_objective(item, policy))
        else:
            if item.question_type in MANUALLY_GRADED:
                needs_manual_review = True
            grades.append(AnswerGrade(item.question_id, False, ZERO))
    return GradingOutcome(
        grades=grades,
        total=sum_marks(grade.marks_obtained for grade in grades),
        needs_manual_review=needs_manual_review,
    )


def sum_marks(marks: Iterable[Decimal]) -> Decimal:
    return sum((Decimal(m) for m in marks), ZERO)


def summarize(total: Decimal, total_marks: Decimal, passing_marks: Decimal) -> ResultSummary:
    """Percentage and pass flag. Negative totals give negative percentages."""
    total = Decimal(total)
    total_marks = Decimal(total_marks)
    percentage = None
    if total_marks != ZERO:
        percentage = (total / total_marks * HUNDRED).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
    return ResultSummary(percentage=percentage, is_passed=total >= Decimal(passing_marks))
