"""Exam attempt lifecycle.

in-progress -> submitted -> evaluated, or in-progress -> abandoned.
Every mutating operation runs in one transaction holding a row lock on the
attempt; notifications go out only after that transaction commits.
"""
import logging
import random
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from exams.models import Exam
from notifications.notifier import get_notifier, notify_after_commit

from .exceptions import (
    AlreadySubmitted,
    AttemptNotFound,
    DuplicateAttempt,
    ExamEnded,
    ExamNotFound,
    ExamNotPublished,
    ExamNotStarted,
    Forbidden,
    InvalidMarks,
    InvalidState,
)
from .grading import ZERO, AnswerSheetItem, NegativeMarking, auto_grade, sum_marks, summarize
from .models import AttemptAnswer, ExamAttempt
from .sequencing import question_order

logger = logging.getLogger(__name__)

Status = ExamAttempt.Status


class AttemptLifecycle:
    def __init__(self, notifier=None, rng=None, clock=None):
        self.notifier = notifier if notifier is not None else get_notifier()
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock or timezone.now

    # --- Lookups ---

    def get_exam(self, exam_id):
        try:
            return Exam.objects.get(pk=exam_id)
        except Exam.DoesNotExist:
            raise ExamNotFound()

    def get_attempt(self, attempt_id):
        try:
            return ExamAttempt.objects.select_related('exam', 'student', 'evaluated_by').get(pk=attempt_id)
        except ExamAttempt.DoesNotExist:
            raise AttemptNotFound()

    def _lock(self, attempt_id):
        try:
            return (
                ExamAttempt.objects.select_for_update(of=('self',))
                .select_related('exam')
                .get(pk=attempt_id)
            )
        except ExamAttempt.DoesNotExist:
            raise AttemptNotFound()

    @staticmethod
    def _check_owner(attempt, student):
        if attempt.student_id != student.pk:
            logger.warning("User %s tried to act on attempt %s owned by %s", student.pk, attempt.pk, attempt.student_id)
            raise Forbidden()

    # --- Operations ---

    def start(self, exam_id, student, ip_address=None, browser_info=""):
        exam = self.get_exam(exam_id)
        if not exam.is_published:
            raise ExamNotPublished()
        now = self.clock()
        if now < exam.start_time:
            raise ExamNotStarted()
        if now > exam.end_time:
            raise ExamEnded()

        order = question_order(exam.ordered_question_ids(), exam.randomize_questions, self.rng)
        try:
            # The unique constraint on (exam, student) is the duplicate check.
            with transaction.atomic():
                attempt = ExamAttempt.objects.create(
                    exam=exam,
                    student=student,
                    started_at=now,
                    ip_address=ip_address,
                    browser_info=(browser_info or "")[:255],
                )
                AttemptAnswer.objects.bulk_create([
                    AttemptAnswer(attempt=attempt, question_id=question_id, position=position)
                    for position, question_id in enumerate(order)
                ])
        except IntegrityError:
            existing = ExamAttempt.objects.filter(exam=exam, student=student).first()
            if existing is None:
                raise
            logger.warning("Duplicate start for exam %s by student %s (attempt %s)", exam.pk, student.pk, existing.pk)
            raise DuplicateAttempt(existing)

        logger.info("Attempt %s started: exam %s, student %s, %d questions", attempt.pk, exam.pk, student.pk, len(order))
        return attempt

    def save_answer(self, attempt_id, student, question_id, payload, time_taken_seconds=None):
        with transaction.atomic():
            attempt = self._lock(attempt_id)
            self._check_owner(attempt, student)
            if attempt.status != Status.IN_PROGRESS:
                raise InvalidState("Exam is not in progress.")

            changes = {'answer': payload, 'updated_at': self.clock()}
            if time_taken_seconds is not None:
                changes['time_taken_seconds'] = time_taken_seconds
            # Single-row update; other answers of the attempt are never rewritten.
            updated = AttemptAnswer.objects.filter(attempt_id=attempt.pk, question_id=question_id).update(**changes)

        if not updated:
            logger.debug("Attempt %s has no question %s; auto-save ignored", attempt_id, question_id)
        return bool(updated)

    def submit(self, attempt_id, student):
        with transaction.atomic():
            attempt = self._lock(attempt_id)
            self._check_owner(attempt, student)
            if attempt.status != Status.IN_PROGRESS:
                raise AlreadySubmitted()

            exam = attempt.exam
            answers = list(attempt.answers.select_related('question').prefetch_related('question__options'))
            policy = NegativeMarking(exam.negative_marking_enabled, exam.negative_marks_per_wrong)
            outcome = auto_grade((self._sheet_item(answer) for answer in answers), policy)

            for answer, grade in zip(answers, outcome.grades):
                answer.is_correct = grade.is_correct
                answer.marks_obtained = grade.marks_obtained
            AttemptAnswer.objects.bulk_update(answers, ['is_correct', 'marks_obtained'])

            attempt.submitted_at = self.clock()
            attempt.total_marks_obtained = outcome.total
            attempt.status = Status.SUBMITTED
            if not outcome.needs_manual_review:
                self._apply_result(attempt, outcome.total)
            attempt.save()

            if attempt.status == Status.EVALUATED:
                notify_after_commit(self.notifier, 'result_available', attempt.student_id, exam.pk)

        logger.info("Attempt %s submitted: status=%s total=%s", attempt.pk, attempt.status, attempt.total_marks_obtained)
        return attempt

    def evaluate(self, attempt_id, evaluator, answer_scores, feedback=""):
        """Apply manual marks and finalize. Safe to re-run on an evaluated attempt."""
        with transaction.atomic():
            attempt = self._lock(attempt_id)
            if attempt.status not in ExamAttempt.EVALUABLE_STATUSES:
                raise InvalidState(f"Cannot evaluate an attempt that is {attempt.status}.")

            answers = list(attempt.answers.select_related('question'))
            by_question = {answer.question_id: answer for answer in answers}
            changed = {}
            for score in answer_scores:
                answer = by_question.get(score['question_id'])
                if answer is None:
                    continue
                marks = Decimal(score['marks_obtained'])
                if not ZERO <= marks <= answer.question.points:
                    raise InvalidMarks(
                        f"Marks for question {answer.question_id} must be between 0 and {answer.question.points}."
                    )
                answer.marks_obtained = marks
                changed[answer.pk] = answer
            if changed:
                AttemptAnswer.objects.bulk_update(list(changed.values()), ['marks_obtained'])

            total = sum_marks(answer.marks_obtained for answer in answers)
            attempt.total_marks_obtained = total
            self._apply_result(attempt, total)
            attempt.evaluated_by = evaluator
            attempt.evaluated_at = self.clock()
            attempt.feedback = feedback or ""
            attempt.save()

            exam = attempt.exam
            notify_after_commit(
                self.notifier, 'evaluation_complete', attempt.student_id, exam.pk, total, exam.total_marks,
            )

        logger.info("Attempt %s evaluated by %s: total=%s", attempt.pk, evaluator.pk, total)
        return attempt

    def abandon(self, attempt_id):
        with transaction.atomic():
            attempt = self._lock(attempt_id)
            if attempt.status != Status.IN_PROGRESS:
                raise InvalidState(f"Cannot abandon an attempt that is {attempt.status}.")
            attempt.status = Status.ABANDONED
            attempt.save(update_fields=['status', 'updated_at'])
        logger.info("Attempt %s abandoned", attempt.pk)
        return attempt

    def abandon_expired(self, grace=None):
        """Abandon in-progress attempts whose deadline (plus ``grace``) has passed."""
        now = self.clock()
        abandoned = []
        candidates = ExamAttempt.objects.filter(status=Status.IN_PROGRESS).select_related('exam')
        for attempt in list(candidates):
            deadline = attempt.deadline()
            if grace is not None:
                deadline += grace
            if deadline >= now:
                continue
            try:
                abandoned.append(self.abandon(attempt.pk))
            except InvalidState:
                # Submitted between the scan and the lock
                continue
        return abandoned

    # --- Helpers ---

    @staticmethod
    def _sheet_item(answer):
        question = answer.question
        return AnswerSheetItem(
            question_id=question.pk,
            question_type=question.question_type,
            payload=answer.answer,
            points=question.points,
            correct_option=question.correct_option_text() if question.is_auto_graded else None,
        )

    @staticmethod
    def _apply_result(attempt, total):
        exam = attempt.exam
        summary = summarize(total, exam.total_marks, exam.passing_marks)
        attempt.percentage = summary.percentage
        attempt.is_passed = summary.is_passed
        attempt.status = Status.EVALUATED
