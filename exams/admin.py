from django.contrib import admin

from .models import Exam, ExamQuestion, Option, Question, QuestionTestCase


class OptionInline(admin.TabularInline):
    model = Option
    extra = 0


class QuestionTestCaseInline(admin.TabularInline):
    model = QuestionTestCase
    extra = 0


class ExamQuestionInline(admin.TabularInline):
    model = ExamQuestion
    extra = 0


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ['id', 'question_type', 'subject', 'topic', 'difficulty', 'points']
    list_filter = ['question_type', 'difficulty', 'subject']
    search_fields = ['text', 'topic']
    inlines = [OptionInline, QuestionTestCaseInline]


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ['title', 'subject', 'start_time', 'end_time', 'is_published', 'created_by']
    list_filter = ['is_published', 'subject']
    filter_horizontal = ['allowed_students']
    inlines = [ExamQuestionInline]
