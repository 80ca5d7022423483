# assessments/models.py
from datetime import timedelta
from decimal import Decimal

from django.db import models
from django.conf import settings
from django.utils import timezone

from exams.models import Exam, Question


class ExamAttempt(models.Model):
    """A student's single attempt at an exam."""

    class Status(models.TextChoices):
        IN_PROGRESS = "in-progress", "In Progress"
        SUBMITTED = "submitted", "Submitted"
        EVALUATED = "evaluated", "Evaluated"
        ABANDONED = "abandoned", "Abandoned"

    TERMINAL_STATUSES = (Status.EVALUATED, Status.ABANDONED)
    # Source states from which evaluate may run (evaluated = re-evaluation)
    EVALUABLE_STATUSES = (Status.SUBMITTED, Status.EVALUATED)

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='attempts')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='exam_attempts')

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.IN_PROGRESS)
    started_at = models.DateTimeField(default=timezone.now)
    submitted_at = models.DateTimeField(null=True, blank=True)

    total_marks_obtained = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0"))
    percentage = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_passed = models.BooleanField(null=True)

    # Manual evaluation
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='evaluated_attempts',
    )
    evaluated_at = models.DateTimeField(null=True, blank=True)
    feedback = models.TextField(blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    browser_info = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-started_at']
        constraints = [
            # One attempt per student per exam, enforced by the database
            models.UniqueConstraint(fields=['exam', 'student'], name='unique_attempt_per_exam_student'),
        ]
        indexes = [
            models.Index(fields=['status'], name='attempt_status_idx'),
        ]

    def __str__(self):
        return f"{self.student} - {self.exam.title} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def deadline(self):
        """Latest moment the attempt can still be worked on."""
        by_duration = self.started_at + timedelta(minutes=self.exam.duration_minutes)
        return min(by_duration, self.exam.end_time)


class AttemptAnswer(models.Model):
    attempt = models.ForeignKey(ExamAttempt, related_name='answers', on_delete=models.CASCADE)
    question = models.ForeignKey(Question, on_delete=models.PROTECT, related_name='attempt_answers')
    position = models.PositiveIntegerField()

    # Choice text, descriptive text or source code; null until answered
    answer = models.JSONField(null=True, blank=True)
    time_taken_seconds = models.PositiveIntegerField(null=True, blank=True)

    # Grading
    is_correct = models.BooleanField(default=False)
    marks_obtained = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal("0"))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['attempt', 'question'], name='unique_answer_per_attempt_question'),
            models.UniqueConstraint(fields=['attempt', 'position'], name='unique_position_per_attempt'),
        ]

    def __str__(self):
        return f"Attempt {self.attempt_id} Q{self.position}"
