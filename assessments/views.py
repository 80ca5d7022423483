from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.models import AuditLog
from .exceptions import DuplicateAttempt
from .models import ExamAttempt
from .permissions import CanEvaluateAttempt, CanViewAttempt, IsEvaluator, IsStudent
from .policies import policy_for
from .serializers import (
    EvaluateAttemptSerializer,
    ExamAttemptListSerializer,
    ExamAttemptSerializer,
    SaveAnswerSerializer,
)
from .services import AttemptLifecycle


class LifecycleMixin:
    lifecycle_class = AttemptLifecycle

    def get_lifecycle(self):
        return self.lifecycle_class()

    def attempt_data(self, attempt):
        reveal = self.request.user.is_evaluator or attempt.status == ExamAttempt.Status.EVALUATED
        return ExamAttemptSerializer(attempt, context={'request': self.request, 'reveal_answers': reveal}).data


# --- STUDENT VIEWS ---

class StartAttemptView(LifecycleMixin, views.APIView):
    """
    Student starts an exam.
    Creates the attempt with one blank answer per question and returns it.
    """
    permission_classes = [IsStudent]

    def post(self, request, exam_id):
        lifecycle = self.get_lifecycle()
        exam = lifecycle.get_exam(exam_id)
        if not policy_for(request.user).can_start(exam):
            self.permission_denied(request, message="You are not allowed to access this exam.")

        try:
            attempt = lifecycle.start(
                exam.pk,
                request.user,
                ip_address=request.META.get('REMOTE_ADDR') or None,
                browser_info=request.META.get('HTTP_USER_AGENT', ''),
            )
        except DuplicateAttempt as exc:
            # Hand back the existing attempt so the client can resume
            return Response(
                {"detail": exc.detail, "code": exc.default_code, "attempt": self.attempt_data(exc.attempt)},
                status=exc.status_code,
            )
        return Response(self.attempt_data(attempt), status=status.HTTP_201_CREATED)


class SaveAnswerView(LifecycleMixin, views.APIView):
    """Auto-save of a single answer while the exam is in progress."""
    permission_classes = [IsStudent]

    def put(self, request, pk):
        serializer = SaveAnswerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self.get_lifecycle().save_answer(
            pk,
            request.user,
            data['question_id'],
            data['answer'],
            time_taken_seconds=data.get('time_taken_seconds'),
        )
        return Response({"status": "Answer saved successfully"})


class SubmitAttemptView(LifecycleMixin, views.APIView):
    """
    Student submits the attempt.
    Objective answers are graded immediately.
    """
    permission_classes = [IsStudent]

    def post(self, request, pk):
        attempt = self.get_lifecycle().submit(pk, request.user)
        return Response(self.attempt_data(attempt))


class MyAttemptsView(generics.ListAPIView):
    """All attempts of the logged-in student (lightweight)."""
    permission_classes = [IsStudent]
    serializer_class = ExamAttemptListSerializer

    def get_queryset(self):
        return ExamAttempt.objects.filter(student=self.request.user).select_related('exam', 'student')


class MyAttemptForExamView(LifecycleMixin, views.APIView):
    permission_classes = [IsStudent]

    def get(self, request, exam_id):
        attempt = ExamAttempt.objects.filter(exam_id=exam_id, student=request.user).select_related('exam').first()
        if attempt is None:
            return Response({"detail": "No attempt found for this exam."}, status=status.HTTP_404_NOT_FOUND)
        return Response(self.attempt_data(attempt))


class AttemptDetailView(LifecycleMixin, views.APIView):
    """Attempt with answers; visible to its student and to evaluators."""
    permission_classes = [permissions.IsAuthenticated, CanViewAttempt]

    def get(self, request, pk):
        attempt = self.get_lifecycle().get_attempt(pk)
        self.check_object_permissions(request, attempt)
        return Response(self.attempt_data(attempt))


# --- FACULTY / ADMIN VIEWS ---

class ExamAttemptsView(generics.ListAPIView):
    """All attempts for one exam, latest submissions first."""
    permission_classes = [IsEvaluator]
    serializer_class = ExamAttemptListSerializer

    def get_queryset(self):
        return (
            ExamAttempt.objects.filter(exam_id=self.kwargs['exam_id'])
            .select_related('exam', 'student')
            .order_by('-submitted_at')
        )


class PendingEvaluationListView(generics.ListAPIView):
    """Submitted attempts that still need manual grading."""
    permission_classes = [IsEvaluator]
    serializer_class = ExamAttemptListSerializer

    def get_queryset(self):
        queryset = ExamAttempt.objects.filter(status=ExamAttempt.Status.SUBMITTED).select_related('exam', 'student')
        exam_id = self.request.query_params.get('exam_id')
        if exam_id:
            queryset = queryset.filter(exam_id=exam_id)
        return queryset.order_by('submitted_at')


class EvaluateAttemptView(LifecycleMixin, views.APIView):
    """
    Evaluator submits marks for answers.
    Payload: { "answers": [ { "question_id": 1, "marks_obtained": 8 } ], "feedback": "..." }
    """
    permission_classes = [IsEvaluator, CanEvaluateAttempt]

    def put(self, request, pk):
        lifecycle = self.get_lifecycle()
        self.check_object_permissions(request, lifecycle.get_attempt(pk))

        serializer = EvaluateAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attempt = lifecycle.evaluate(
            pk,
            request.user,
            serializer.validated_data['answers'],
            serializer.validated_data['feedback'],
        )
        AuditLog.record(
            request, AuditLog.Action.GRADE, attempt,
            f"Evaluated attempt {attempt.pk}: {attempt.total_marks_obtained}/{attempt.exam.total_marks}",
        )
        return Response(self.attempt_data(attempt))
