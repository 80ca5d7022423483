import random
import threading
import time
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import OperationalError, connection
from django.utils import timezone

from assessments.exceptions import (
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
from assessments.models import ExamAttempt
from assessments.sequencing import question_order
from assessments.services import AttemptLifecycle
from exams.models import Question

Status = ExamAttempt.Status


@pytest.fixture
def objective_exam(make_exam, make_question):
    questions = [make_question(options=["A", "B", "C"], correct="B") for _ in range(3)]
    return make_exam(
        questions,
        total_marks=Decimal("15"),
        passing_marks=Decimal("6"),
        negative_marking_enabled=True,
        negative_marks_per_wrong=Decimal("1"),
    )


@pytest.fixture
def mixed_exam(make_exam, make_question):
    mcq = make_question(options=["A", "B"], correct="A", points="5")
    essay = make_question(Question.QuestionType.DESCRIPTIVE, points="10", correct="Reference answer")
    return make_exam([mcq, essay], total_marks=Decimal("15"), passing_marks=Decimal("6"))


def answer_map(attempt):
    return {answer.question_id: answer for answer in attempt.answers.all()}


# --- start ---

def test_start_creates_blank_answer_sheet(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)

    assert attempt.status == Status.IN_PROGRESS
    answers = list(attempt.answers.all())
    assert len(answers) == objective_exam.exam_questions.count()
    assert [a.position for a in answers] == [0, 1, 2]
    assert all(a.answer is None for a in answers)
    assert [a.question_id for a in answers] == objective_exam.ordered_question_ids()


def test_start_shuffles_with_the_injected_rng(notifier, make_exam, make_question, student):
    questions = [make_question(options=["A", "B"], correct="A") for _ in range(8)]
    exam = make_exam(questions, randomize_questions=True)
    lifecycle = AttemptLifecycle(notifier=notifier, rng=random.Random(99))

    attempt = lifecycle.start(exam.pk, student)

    expected = question_order(exam.ordered_question_ids(), True, random.Random(99))
    assert [a.question_id for a in attempt.answers.all()] == expected


def test_second_start_is_a_duplicate(lifecycle, objective_exam, student):
    first = lifecycle.start(objective_exam.pk, student)

    with pytest.raises(DuplicateAttempt) as exc_info:
        lifecycle.start(objective_exam.pk, student)

    assert exc_info.value.attempt.pk == first.pk
    assert ExamAttempt.objects.filter(exam=objective_exam, student=student).count() == 1
    assert first.answers.count() == 3


def test_start_unknown_exam(lifecycle, student):
    with pytest.raises(ExamNotFound):
        lifecycle.start(123456, student)


def test_start_unpublished_exam(lifecycle, make_exam, student):
    exam = make_exam(is_published=False)
    with pytest.raises(ExamNotPublished):
        lifecycle.start(exam.pk, student)
    assert not ExamAttempt.objects.exists()


def test_start_before_window(lifecycle, make_exam, student):
    now = timezone.now()
    exam = make_exam(start_time=now + timedelta(hours=1), end_time=now + timedelta(hours=3))
    with pytest.raises(ExamNotStarted):
        lifecycle.start(exam.pk, student)
    assert not ExamAttempt.objects.exists()


def test_start_after_window(lifecycle, make_exam, student):
    now = timezone.now()
    exam = make_exam(start_time=now - timedelta(hours=3), end_time=now - timedelta(hours=1))
    with pytest.raises(ExamEnded):
        lifecycle.start(exam.pk, student)
    assert not ExamAttempt.objects.exists()


def test_start_records_client_details(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student, ip_address="10.0.0.7", browser_info="x" * 400)
    attempt.refresh_from_db()
    assert attempt.ip_address == "10.0.0.7"
    assert len(attempt.browser_info) == 255


# --- save_answer ---

def test_save_answer_last_write_wins(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    first_q, second_q, _ = objective_exam.ordered_question_ids()

    lifecycle.save_answer(attempt.pk, student, first_q, "A")
    lifecycle.save_answer(attempt.pk, student, second_q, "C", time_taken_seconds=12)
    lifecycle.save_answer(attempt.pk, student, first_q, "B")

    answers = answer_map(attempt)
    assert answers[first_q].answer == "B"
    assert answers[second_q].answer == "C"
    assert answers[second_q].time_taken_seconds == 12


def test_save_answer_for_question_outside_attempt(lifecycle, objective_exam, student, make_question):
    attempt = lifecycle.start(objective_exam.pk, student)
    stray = make_question(options=["A"], correct="A")

    assert lifecycle.save_answer(attempt.pk, student, stray.pk, "A") is False
    assert all(a.answer is None for a in attempt.answers.all())


def test_save_answer_by_another_student(lifecycle, objective_exam, student, other_student):
    attempt = lifecycle.start(objective_exam.pk, student)
    with pytest.raises(Forbidden):
        lifecycle.save_answer(attempt.pk, other_student, objective_exam.ordered_question_ids()[0], "A")


def test_save_answer_after_submit(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    lifecycle.submit(attempt.pk, student)
    with pytest.raises(InvalidState):
        lifecycle.save_answer(attempt.pk, student, objective_exam.ordered_question_ids()[0], "B")


def test_save_answer_unknown_attempt(lifecycle, student):
    with pytest.raises(AttemptNotFound):
        lifecycle.save_answer(999999, student, 1, "A")


# --- submit ---

def test_negative_marking_on_submit(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    correct_q, wrong_q, blank_q = objective_exam.ordered_question_ids()
    lifecycle.save_answer(attempt.pk, student, correct_q, "B")
    lifecycle.save_answer(attempt.pk, student, wrong_q, "C")

    attempt = lifecycle.submit(attempt.pk, student)

    answers = answer_map(attempt)
    assert answers[correct_q].marks_obtained == Decimal("5")
    assert answers[correct_q].is_correct
    assert answers[wrong_q].marks_obtained == Decimal("-1")
    assert answers[blank_q].marks_obtained == Decimal("-1")
    assert attempt.total_marks_obtained == Decimal("3")


def test_objective_exam_is_evaluated_on_submit(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    for question_id in objective_exam.ordered_question_ids():
        lifecycle.save_answer(attempt.pk, student, question_id, "B")

    attempt = lifecycle.submit(attempt.pk, student)
    attempt.refresh_from_db()

    assert attempt.status == Status.EVALUATED
    assert attempt.submitted_at is not None
    assert attempt.total_marks_obtained == Decimal("15")
    assert attempt.percentage == Decimal("100.00")
    assert attempt.is_passed is True


def test_exam_with_descriptive_question_waits_for_evaluation(lifecycle, mixed_exam, student):
    attempt = lifecycle.start(mixed_exam.pk, student)
    mcq_id, essay_id = mixed_exam.ordered_question_ids()
    lifecycle.save_answer(attempt.pk, student, mcq_id, "A")
    lifecycle.save_answer(attempt.pk, student, essay_id, "A long essay")

    attempt = lifecycle.submit(attempt.pk, student)
    attempt.refresh_from_db()

    assert attempt.status == Status.SUBMITTED
    assert attempt.total_marks_obtained == Decimal("5")
    assert attempt.percentage is None
    assert attempt.is_passed is None


def test_submit_twice_is_rejected(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    lifecycle.submit(attempt.pk, student)

    with pytest.raises(AlreadySubmitted):
        lifecycle.submit(attempt.pk, student)
    assert issubclass(AlreadySubmitted, InvalidState)


def test_submit_by_another_student(lifecycle, objective_exam, student, other_student):
    attempt = lifecycle.start(objective_exam.pk, student)
    with pytest.raises(Forbidden):
        lifecycle.submit(attempt.pk, other_student)
    attempt.refresh_from_db()
    assert attempt.status == Status.IN_PROGRESS


# --- evaluate ---

def submitted_mixed_attempt(lifecycle, exam, student):
    attempt = lifecycle.start(exam.pk, student)
    mcq_id, essay_id = exam.ordered_question_ids()
    lifecycle.save_answer(attempt.pk, student, mcq_id, "A")
    lifecycle.save_answer(attempt.pk, student, essay_id, "Trees are graphs without cycles")
    lifecycle.submit(attempt.pk, student)
    return attempt, essay_id


def test_evaluate_adds_manual_marks_to_auto_graded_ones(lifecycle, mixed_exam, student, faculty):
    attempt, essay_id = submitted_mixed_attempt(lifecycle, mixed_exam, student)

    attempt = lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay_id, 'marks_obtained': Decimal("8")}])
    attempt.refresh_from_db()

    assert attempt.total_marks_obtained == Decimal("13")
    assert attempt.status == Status.EVALUATED
    assert attempt.percentage == Decimal("86.67")
    assert attempt.is_passed is True
    assert attempt.evaluated_by == faculty
    assert attempt.evaluated_at is not None


def test_reevaluation_overwrites_previous_result(lifecycle, mixed_exam, student, faculty, admin_user):
    attempt, essay_id = submitted_mixed_attempt(lifecycle, mixed_exam, student)
    lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay_id, 'marks_obtained': Decimal("8")}], "Good")

    attempt = lifecycle.evaluate(
        attempt.pk, admin_user, [{'question_id': essay_id, 'marks_obtained': Decimal("0")}], "Off topic",
    )
    attempt.refresh_from_db()

    assert attempt.total_marks_obtained == Decimal("5")
    assert attempt.percentage == Decimal("33.33")
    assert attempt.is_passed is False
    assert attempt.feedback == "Off topic"
    assert attempt.evaluated_by == admin_user


def test_evaluate_ignores_unknown_questions(lifecycle, mixed_exam, student, faculty):
    attempt, essay_id = submitted_mixed_attempt(lifecycle, mixed_exam, student)

    attempt = lifecycle.evaluate(attempt.pk, faculty, [
        {'question_id': essay_id, 'marks_obtained': Decimal("4")},
        {'question_id': 987654, 'marks_obtained': Decimal("50")},
    ])

    assert attempt.total_marks_obtained == Decimal("9")


def test_evaluate_pass_boundary(lifecycle, make_exam, make_question, student, faculty):
    essay = make_question(Question.QuestionType.DESCRIPTIVE, points="100")
    exam = make_exam([essay], total_marks=Decimal("100"), passing_marks=Decimal("40"))
    attempt = lifecycle.start(exam.pk, student)
    lifecycle.submit(attempt.pk, student)

    attempt = lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay.pk, 'marks_obtained': Decimal("40")}])

    assert attempt.total_marks_obtained == Decimal("40")
    assert attempt.percentage == Decimal("40.00")
    assert attempt.is_passed is True


def test_evaluate_in_progress_attempt_is_rejected(lifecycle, mixed_exam, student, faculty):
    attempt = lifecycle.start(mixed_exam.pk, student)
    with pytest.raises(InvalidState):
        lifecycle.evaluate(attempt.pk, faculty, [])


def test_evaluate_rejects_marks_outside_question_points(lifecycle, mixed_exam, student, faculty):
    attempt, essay_id = submitted_mixed_attempt(lifecycle, mixed_exam, student)

    for marks in (Decimal("10.01"), Decimal("-1")):
        with pytest.raises(InvalidMarks):
            lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay_id, 'marks_obtained': marks}])

    attempt.refresh_from_db()
    assert attempt.status == Status.SUBMITTED
    assert attempt.answers.get(question_id=essay_id).marks_obtained == Decimal("0")


def test_large_percentage_is_stored(lifecycle, make_exam, make_question, student, faculty):
    essay = make_question(Question.QuestionType.DESCRIPTIVE, points="9999")
    exam = make_exam([essay], total_marks=Decimal("0.50"), passing_marks=Decimal("0.25"))
    attempt = lifecycle.start(exam.pk, student)
    lifecycle.submit(attempt.pk, student)

    lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay.pk, 'marks_obtained': Decimal("9999")}])

    attempt.refresh_from_db()
    assert attempt.percentage == Decimal("1999800.00")
    assert attempt.is_passed is True


def test_evaluate_unknown_attempt(lifecycle, faculty):
    with pytest.raises(AttemptNotFound):
        lifecycle.evaluate(424242, faculty, [])


# --- abandon ---

def test_abandon_in_progress_attempt(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    attempt = lifecycle.abandon(attempt.pk)
    assert attempt.status == Status.ABANDONED
    assert attempt.is_terminal

    with pytest.raises(InvalidState):
        lifecycle.submit(attempt.pk, student)
    with pytest.raises(InvalidState):
        lifecycle.abandon(attempt.pk)


def test_abandoned_attempt_rejects_answers(lifecycle, objective_exam, student):
    attempt = lifecycle.start(objective_exam.pk, student)
    lifecycle.abandon(attempt.pk)

    with pytest.raises(InvalidState):
        lifecycle.save_answer(attempt.pk, student, objective_exam.ordered_question_ids()[0], "B")

    attempt.refresh_from_db()
    assert attempt.status == Status.ABANDONED
    assert all(a.answer is None for a in attempt.answers.all())


def test_abandoned_attempt_cannot_be_evaluated(lifecycle, mixed_exam, student, faculty):
    attempt = lifecycle.start(mixed_exam.pk, student)
    lifecycle.abandon(attempt.pk)
    _, essay_id = mixed_exam.ordered_question_ids()

    with pytest.raises(InvalidState):
        lifecycle.evaluate(attempt.pk, faculty, [{'question_id': essay_id, 'marks_obtained': Decimal("10")}])

    attempt.refresh_from_db()
    assert attempt.status == Status.ABANDONED
    assert attempt.evaluated_by is None
    assert attempt.percentage is None


def test_abandon_expired_only_touches_overdue_attempts(notifier, lifecycle, make_exam, make_question, student, other_student):
    question = make_question(options=["A", "B"], correct="A")
    short_exam = make_exam([question], duration_minutes=30)
    long_exam = make_exam([question], duration_minutes=600, department="EE", semester=1)
    overdue = lifecycle.start(short_exam.pk, student)
    running = lifecycle.start(long_exam.pk, other_student)

    later = timezone.now() + timedelta(minutes=45)
    sweeper = AttemptLifecycle(notifier=notifier, clock=lambda: later)
    abandoned = sweeper.abandon_expired(grace=timedelta(minutes=5))

    assert [a.pk for a in abandoned] == [overdue.pk]
    overdue.refresh_from_db()
    running.refresh_from_db()
    assert overdue.status == Status.ABANDONED
    assert running.status == Status.IN_PROGRESS


def test_deadline_is_capped_by_exam_end(lifecycle, make_exam, make_question, student):
    now = timezone.now()
    exam = make_exam([make_question(options=["A"], correct="A")], duration_minutes=600, end_time=now + timedelta(hours=1))
    attempt = lifecycle.start(exam.pk, student)
    assert attempt.deadline() == exam.end_time


# --- concurrency ---

@pytest.mark.django_db(transaction=True)
def test_concurrent_starts_create_one_attempt(notifier, objective_exam, student):
    """Two racing starts for the same student leave exactly one attempt behind."""
    barrier = threading.Barrier(2)
    started, duplicates = [], []

    def start():
        lifecycle = AttemptLifecycle(notifier=notifier, rng=random.Random(1))
        barrier.wait()
        try:
            # SQLite reports a busy table instead of blocking; retry like a client would.
            for _ in range(50):
                try:
                    started.append(lifecycle.start(objective_exam.pk, student).pk)
                    return
                except DuplicateAttempt as exc:
                    duplicates.append(exc.attempt.pk)
                    return
                except OperationalError:
                    time.sleep(0.01)
        finally:
            connection.close()

    threads = [threading.Thread(target=start) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(started) == 1
    assert duplicates == started
    attempt = ExamAttempt.objects.get(exam=objective_exam, student=student)
    assert attempt.pk == started[0]
    assert attempt.answers.count() == 3
