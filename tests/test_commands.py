from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.utils import timezone

from assessments.models import ExamAttempt


def test_abandon_expired_attempts_command(make_exam, student, other_student):
    now = timezone.now()
    exam = make_exam(duration_minutes=30)
    stale = ExamAttempt.objects.create(exam=exam, student=student, started_at=now - timedelta(minutes=50))
    fresh = ExamAttempt.objects.create(exam=exam, student=other_student, started_at=now - timedelta(minutes=10))
    out = StringIO()

    call_command('abandon_expired_attempts', '--grace-minutes', '5', stdout=out)

    stale.refresh_from_db()
    fresh.refresh_from_db()
    assert stale.status == ExamAttempt.Status.ABANDONED
    assert fresh.status == ExamAttempt.Status.IN_PROGRESS
    assert "1 attempt(s) abandoned" in out.getvalue()


def test_grace_period_keeps_recently_expired_attempts(make_exam, student):
    exam = make_exam(duration_minutes=30)
    attempt = ExamAttempt.objects.create(
        exam=exam, student=student, started_at=timezone.now() - timedelta(minutes=33),
    )

    call_command('abandon_expired_attempts', '--grace-minutes', '10', stdout=StringIO())

    attempt.refresh_from_db()
    assert attempt.status == ExamAttempt.Status.IN_PROGRESS
