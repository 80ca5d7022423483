from django.contrib import admin

from .models import AttemptAnswer, ExamAttempt


class AttemptAnswerInline(admin.TabularInline):
    model = AttemptAnswer
    extra = 0
    can_delete = False
    readonly_fields = ['question', 'position', 'answer', 'is_correct', 'marks_obtained']


@admin.register(ExamAttempt)
class ExamAttemptAdmin(admin.ModelAdmin):
    list_display = ['id', 'exam', 'student', 'status', 'total_marks_obtained', 'is_passed']
    list_filter = ['status']
    search_fields = ['student__email', 'exam__title']
    inlines = [AttemptAnswerInline]
