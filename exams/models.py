# exam_portal/exams/models.py
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from assessments.grading import AUTO_GRADED


class Question(models.Model):
    class QuestionType(models.TextChoices):
        MULTIPLE_CHOICE = "multiple-choice", "Multiple Choice"
        TRUE_FALSE = "true-false", "True / False"
        DESCRIPTIVE = "descriptive", "Descriptive"
        CODING = "coding", "Coding"

    class Difficulty(models.TextChoices):
        EASY = "easy", "Easy"
        MEDIUM = "medium", "Medium"
        HARD = "hard", "Hard"

    # Types graded at submission time by comparing against the correct option
    AUTO_GRADED_TYPES = AUTO_GRADED

    text = models.TextField()
    question_type = models.CharField(max_length=20, choices=QuestionType.choices)

    # Metadata for the question bank
    topic = models.CharField(max_length=100)
    subject = models.CharField(max_length=100)
    difficulty = models.CharField(max_length=20, choices=Difficulty.choices, default=Difficulty.MEDIUM)
    tags = models.JSONField(default=list, blank=True)
    points = models.DecimalField(
        max_digits=6, decimal_places=2, default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    # Reference answer for descriptive / coding questions
    correct_answer = models.TextField(blank=True)
    explanation = models.TextField(blank=True)
    code_template = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='questions',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['topic', 'difficulty', 'subject'], name='question_topic_diff_subj_idx'),
        ]

    def __str__(self):
        return f"{self.text[:50]}..."

    @property
    def is_auto_graded(self):
        return self.question_type in self.AUTO_GRADED_TYPES

    def correct_option_text(self):
        """Text of the first option flagged correct, or None."""
        for option in self.options.all():
            if option.is_correct:
                return option.text
        return None


class Option(models.Model):
    question = models.ForeignKey(Question, related_name='options', on_delete=models.CASCADE)
    text = models.CharField(max_length=255)
    is_correct = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return self.text


class QuestionTestCase(models.Model):
    """Input/expected-output pair attached to a coding question."""
    question = models.ForeignKey(Question, related_name='test_cases', on_delete=models.CASCADE)
    input = models.TextField(blank=True)
    expected_output = models.TextField()
    is_hidden = models.BooleanField(default=False)

    class Meta:
        ordering = ['id']


class Exam(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    subject = models.CharField(max_length=100)
    instructions = models.TextField(blank=True)

    duration_minutes = models.PositiveIntegerField()
    total_marks = models.DecimalField(max_digits=7, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    passing_marks = models.DecimalField(max_digits=7, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])

    start_time = models.DateTimeField()
    end_time = models.DateTimeField()

    questions = models.ManyToManyField(Question, through='ExamQuestion', related_name='exams', blank=True)
    randomize_questions = models.BooleanField(default=True)

    # Access rule: explicit allow-list OR department + semester match
    allowed_students = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='allowed_exams', blank=True)
    department = models.CharField(max_length=100, blank=True)
    semester = models.PositiveSmallIntegerField(null=True, blank=True)

    is_published = models.BooleanField(default=False)

    negative_marking_enabled = models.BooleanField(default=False)
    negative_marks_per_wrong = models.DecimalField(
        max_digits=6, decimal_places=2, default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='created_exams')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['start_time', 'end_time', 'is_published'], name='exam_schedule_published_idx'),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValidationError({'end_time': "End time must be after the start time."})

    def ordered_question_ids(self):
        return list(self.exam_questions.order_by('order', 'id').values_list('question_id', flat=True))

    def is_open(self, now=None):
        now = now or timezone.now()
        return self.start_time <= now <= self.end_time

    def admits(self, user):
        """Access rule check for a student."""
        if self.allowed_students.filter(pk=user.pk).exists():
            return True
        return bool(self.department) and self.department == user.department and self.semester == user.semester


class ExamQuestion(models.Model):
    exam = models.ForeignKey(Exam, related_name='exam_questions', on_delete=models.CASCADE)
    question = models.ForeignKey(Question, related_name='exam_links', on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order', 'id']
        constraints = [
            models.UniqueConstraint(fields=['exam', 'question'], name='unique_question_per_exam'),
        ]

    def __str__(self):
        return f"{self.exam} #{self.order}: {self.question_id}"
