import csv
import io
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Max, ProtectedError, Q
from django.utils import timezone
from rest_framework import viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response

from assessments.permissions import CanManageExam, IsEvaluator, IsStudent
from cores.models import AuditLog
from notifications.notifier import get_notifier, notify_after_commit

from .models import Exam, ExamQuestion, Option, Question
from .serializers import (
    ExamDetailSerializer,
    ExamListSerializer,
    ExamSerializer,
    QuestionSerializer,
)

logger = logging.getLogger(__name__)


class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.all().order_by('-start_time')

    # Enable search on title and subject
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'subject']

    def get_queryset(self):
        queryset = super().get_queryset().select_related('created_by')
        user = self.request.user
        if user.is_portal_admin:
            return queryset
        if user.is_faculty:
            return queryset.filter(created_by=user)
        # Students: published exams they are allowed into
        allowed = Q(allowed_students=user)
        if user.department:
            allowed |= Q(department=user.department, semester=user.semester)
        return queryset.filter(allowed, is_published=True).distinct()

    def get_serializer_class(self):
        if not self.request.user.is_evaluator:
            return ExamListSerializer
        if self.action == 'retrieve':
            return ExamDetailSerializer
        return ExamSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated(), CanManageExam()]
        if self.action == 'upcoming':
            return [IsStudent()]
        return [IsEvaluator(), CanManageExam()]

    @transaction.atomic
    def perform_create(self, serializer):
        exam = serializer.save(created_by=self.request.user)
        AuditLog.record(self.request, AuditLog.Action.CREATE, exam, f"Created exam: {exam.title}")

        # Let the allow-listed students know
        student_ids = list(exam.allowed_students.values_list('id', flat=True))
        if student_ids:
            notify_after_commit(get_notifier(), 'exam_scheduled', student_ids, exam.pk)

    def perform_update(self, serializer):
        exam = serializer.save()
        AuditLog.record(self.request, AuditLog.Action.UPDATE, exam, f"Updated exam: {exam.title}")

    def perform_destroy(self, instance):
        if instance.attempts.exists():
            raise ValidationError({"error": "Exam already has attempts and cannot be deleted."})
        AuditLog.record(self.request, AuditLog.Action.DELETE, instance, f"Deleted exam: {instance.title}")
        instance.delete()

    @action(detail=True, methods=['patch'], url_path='publish')
    def toggle_publish(self, request, pk=None):
        exam = self.get_object()
        exam.is_published = not exam.is_published
        exam.save(update_fields=['is_published', 'updated_at'])
        state = 'published' if exam.is_published else 'unpublished'
        AuditLog.record(request, AuditLog.Action.PUBLISH, exam, f"Exam {state}: {exam.title}")
        logger.info("Exam %s %s by %s", exam.pk, state, request.user.pk)
        return Response({
            "status": f"Exam {state} successfully",
            "exam": ExamSerializer(exam).data,
        })

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        limit = settings.EXAM_PORTAL.get('UPCOMING_EXAMS_LIMIT', 10)
        exams = self.get_queryset().filter(start_time__gt=timezone.now()).order_by('start_time')[:limit]
        return Response(ExamListSerializer(exams, many=True).data)

    @action(detail=True, methods=['post'], url_path='assign-questions')
    def assign_questions(self, request, pk=None):
        """
        Appends a list of Question IDs to this Exam, keeping the given order.
        Payload: { "question_ids": [1, 2, 3] }
        """
        exam = self.get_object()
        question_ids = request.data.get('question_ids', [])
        existing = set(exam.exam_questions.values_list('question_id', flat=True))
        valid = set(Question.objects.filter(id__in=question_ids).values_list('id', flat=True))
        next_order = (exam.exam_questions.aggregate(top=Max('order'))['top'] or 0) + 1

        added = []
        for qid in question_ids:
            if qid in valid and qid not in existing and qid not in added:
                added.append(qid)
        ExamQuestion.objects.bulk_create([
            ExamQuestion(exam=exam, question_id=qid, order=next_order + index)
            for index, qid in enumerate(added)
        ])
        return Response({"status": f"Added {len(added)} questions to {exam.title}"})

    @action(detail=True, methods=['post'], url_path='remove-questions')
    def remove_questions(self, request, pk=None):
        """
        Removes questions from the exam; they stay in the bank.
        """
        exam = self.get_object()
        question_ids = request.data.get('question_ids', [])
        count, _ = exam.exam_questions.filter(question_id__in=question_ids).delete()
        return Response({"status": f"Removed {count} questions from {exam.title}"})


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.all().prefetch_related('options', 'test_cases').order_by('-id')
    serializer_class = QuestionSerializer
    permission_classes = [IsEvaluator]

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text', 'topic', 'subject']

    def get_queryset(self):
        queryset = super().get_queryset()
        for param in ('question_type', 'difficulty', 'subject', 'topic'):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        exam_id = self.request.query_params.get('exam_id')
        if exam_id:
            queryset = queryset.filter(exam_links__exam_id=exam_id)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ValidationError({"error": "Question has been answered in an attempt and cannot be deleted."})

    @action(detail=False, methods=['post'], url_path='bulk-upload', parser_classes=[MultiPartParser, FormParser])
    def bulk_upload(self, request):
        """
        Upload questions via CSV.
        Expected CSV Header: question_text, question_type, topic, subject, difficulty, points, options, correct_answer
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            reader = csv.DictReader(io.StringIO(file_obj.read().decode('utf-8')))
            with transaction.atomic():
                created_count = 0
                for line, row in enumerate(reader, start=2):
                    self._create_from_row(row, line)
                    created_count += 1
        except (UnicodeDecodeError, csv.Error, KeyError, ValueError) as e:
            logger.warning("Bulk upload by %s rejected: %s", request.user.pk, e)
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {"status": f"Successfully uploaded {created_count} questions"},
            status=status.HTTP_201_CREATED,
        )

    def _create_from_row(self, row, line):
        q_type = (row.get('question_type') or Question.QuestionType.MULTIPLE_CHOICE).strip().lower()
        if q_type not in Question.QuestionType.values:
            raise ValueError(f"Line {line}: unknown question type '{q_type}'")
        try:
            points = Decimal(row.get('points') or 1)
        except InvalidOperation:
            raise ValueError(f"Line {line}: invalid points '{row.get('points')}'")

        correct_ans = (row.get('correct_answer') or '').strip()
        question = Question.objects.create(
            text=row['question_text'],
            question_type=q_type,
            topic=row.get('topic') or 'General',
            subject=row.get('subject') or 'General',
            difficulty=(row.get('difficulty') or Question.Difficulty.MEDIUM).lower(),
            points=points,
            correct_answer=correct_ans,
            created_by=self.request.user,
        )

        # Handle Options (choice questions)
        if question.is_auto_graded:
            raw_options = (row.get('options') or '').split('|')
            if q_type == Question.QuestionType.TRUE_FALSE and not any(o.strip() for o in raw_options):
                raw_options = ['True', 'False']
            Option.objects.bulk_create([
                Option(
                    question=question,
                    text=clean_text,
                    is_correct=(clean_text.lower() == correct_ans.lower()),
                    order=index,
                )
                for index, clean_text in enumerate(o.strip() for o in raw_options) if clean_text
            ])
        return question
