import itertools
import random
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from assessments.services import AttemptLifecycle
from exams.models import Exam, ExamQuestion, Option, Question
from notifications.notifier import Notifier
from users.models import User


class RecordingNotifier(Notifier):
    """Collects delivered events instead of sending them anywhere."""

    def __init__(self):
        self.events = []

    def result_available(self, student_id, exam_id):
        self.events.append(('result_available', student_id, exam_id))

    def evaluation_complete(self, student_id, exam_id, score, total):
        self.events.append(('evaluation_complete', student_id, exam_id, score, total))

    def exam_scheduled(self, student_ids, exam_id):
        self.events.append(('exam_scheduled', list(student_ids), exam_id))


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def factory(role=User.Role.STUDENT, **extra):
        n = next(counter)
        email = extra.pop('email', f"{role}{n}@example.com")
        return User.objects.create_user(
            username=email, email=email, password="secret123", role=role,
            first_name=extra.pop('first_name', role.title()), last_name=extra.pop('last_name', str(n)),
            **extra,
        )

    return factory


@pytest.fixture
def student(make_user):
    return make_user(User.Role.STUDENT, department="CS", semester=3, roll_number="CS-001")


@pytest.fixture
def other_student(make_user):
    return make_user(User.Role.STUDENT, department="EE", semester=1)


@pytest.fixture
def faculty(make_user):
    return make_user(User.Role.FACULTY)


@pytest.fixture
def admin_user(make_user):
    return make_user(User.Role.ADMIN)


@pytest.fixture
def make_question(faculty):
    def factory(question_type=Question.QuestionType.MULTIPLE_CHOICE, points="5", options=None, correct=None, **extra):
        question = Question.objects.create(
            text=extra.pop('text', f"What is the answer ({question_type})?"),
            question_type=question_type,
            topic=extra.pop('topic', "General"),
            subject=extra.pop('subject', "Computing"),
            points=Decimal(points),
            correct_answer=correct or "",
            created_by=faculty,
            **extra,
        )
        if question_type == Question.QuestionType.TRUE_FALSE and options is None:
            options = ["True", "False"]
        for index, text in enumerate(options or []):
            Option.objects.create(question=question, text=text, is_correct=(text == correct), order=index)
        return question

    return factory


@pytest.fixture
def make_exam(faculty):
    def factory(questions=(), **extra):
        now = timezone.now()
        defaults = dict(
            title="Data Structures Midterm",
            subject="Computing",
            duration_minutes=60,
            total_marks=Decimal("100"),
            passing_marks=Decimal("40"),
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=2),
            randomize_questions=False,
            department="CS",
            semester=3,
            is_published=True,
            created_by=faculty,
        )
        defaults.update(extra)
        exam = Exam.objects.create(**defaults)
        for order, question in enumerate(questions):
            ExamQuestion.objects.create(exam=exam, question=question, order=order)
        return exam

    return factory


@pytest.fixture
def mcq(make_question):
    return make_question(options=["A", "B", "C", "D"], correct="B")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lifecycle(notifier):
    return AttemptLifecycle(notifier=notifier, rng=random.Random(7))


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def login(user):
        api_client.force_authenticate(user=user)
        return api_client

    return login
