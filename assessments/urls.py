from django.urls import path
from .views import (
    AttemptDetailView,
    EvaluateAttemptView,
    ExamAttemptsView,
    MyAttemptForExamView,
    MyAttemptsView,
    PendingEvaluationListView,
    SaveAnswerView,
    StartAttemptView,
    SubmitAttemptView,
)

urlpatterns = [
    # --- Student Exam Flow ---
    path('start/<int:exam_id>/', StartAttemptView.as_view(), name='attempt-start'),
    path('my-attempts/', MyAttemptsView.as_view(), name='my-attempts'),
    path('my/<int:exam_id>/', MyAttemptForExamView.as_view(), name='my-attempt'),
    path('<int:pk>/answer/', SaveAnswerView.as_view(), name='attempt-answer'),
    path('<int:pk>/submit/', SubmitAttemptView.as_view(), name='attempt-submit'),
    path('<int:pk>/', AttemptDetailView.as_view(), name='attempt-detail'),

    # --- Evaluation (Faculty / Admin) ---
    path('exam/<int:exam_id>/', ExamAttemptsView.as_view(), name='exam-attempts'),
    path('pending/', PendingEvaluationListView.as_view(), name='attempts-pending'),
    path('<int:pk>/evaluate/', EvaluateAttemptView.as_view(), name='attempt-evaluate'),
]
