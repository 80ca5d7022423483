# exam_portal/exams/serializers.py
from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from .models import Exam, ExamQuestion, Option, Question, QuestionTestCase

User = get_user_model()


# --- Helper Serializers ---

class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['id', 'text', 'is_correct']


class QuestionTestCaseSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuestionTestCase
        fields = ['id', 'input', 'expected_output', 'is_hidden']


# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Full question for the bank (faculty/admin); exposes the correct answers."""
    question_text = serializers.CharField(source='text')
    # Options are written as plain strings; the one equal to correct_answer is marked correct
    options = serializers.ListField(child=serializers.CharField(max_length=255), required=False, write_only=True)
    options_data = OptionSerializer(source='options', many=True, read_only=True)
    test_cases = QuestionTestCaseSerializer(many=True, required=False)

    class Meta:
        model = Question
        fields = [
            'id', 'question_text', 'question_type', 'topic', 'subject', 'difficulty',
            'tags', 'points', 'correct_answer', 'explanation', 'code_template',
            'options', 'options_data', 'test_cases', 'created_by', 'created_at',
        ]
        read_only_fields = ['created_by', 'created_at']

    def validate(self, attrs):
        q_type = attrs.get('question_type', getattr(self.instance, 'question_type', None))
        options = attrs.get('options')
        if q_type == Question.QuestionType.TRUE_FALSE and not options and self.instance is None:
            attrs['options'] = options = ['True', 'False']
        if q_type in Question.AUTO_GRADED_TYPES and options is not None:
            correct = attrs.get('correct_answer', getattr(self.instance, 'correct_answer', '')).strip().lower()
            if not any(opt.strip().lower() == correct for opt in options):
                raise serializers.ValidationError({'correct_answer': "Must match one of the options."})
        elif q_type in Question.AUTO_GRADED_TYPES and self.instance is None:
            raise serializers.ValidationError({'options': "Choice questions need options."})
        return attrs

    @staticmethod
    def _write_options(question, options_text):
        correct_ans = question.correct_answer.strip().lower()
        question.options.all().delete()
        Option.objects.bulk_create([
            Option(
                question=question,
                text=opt_text.strip(),
                is_correct=(opt_text.strip().lower() == correct_ans),
                order=index,
            )
            for index, opt_text in enumerate(options_text) if opt_text.strip()
        ])

    @staticmethod
    def _write_test_cases(question, cases):
        question.test_cases.all().delete()
        QuestionTestCase.objects.bulk_create([QuestionTestCase(question=question, **case) for case in cases])

    @transaction.atomic
    def create(self, validated_data):
        options_text = validated_data.pop('options', [])
        cases = validated_data.pop('test_cases', [])
        question = Question.objects.create(**validated_data)
        if options_text:
            self._write_options(question, options_text)
        if cases:
            self._write_test_cases(question, cases)
        return question

    @transaction.atomic
    def update(self, instance, validated_data):
        options_text = validated_data.pop('options', None)
        cases = validated_data.pop('test_cases', None)
        instance = super().update(instance, validated_data)
        if options_text is not None:
            self._write_options(instance, options_text)
        if cases is not None:
            self._write_test_cases(instance, cases)
        return instance


# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    # Ordered list of question ids; replaces the exam's questions when sent
    question_ids = serializers.ListField(child=serializers.IntegerField(), required=False, write_only=True)
    allowed_students = serializers.PrimaryKeyRelatedField(
        many=True, required=False, queryset=User.objects.filter(role=User.Role.STUDENT),
    )
    total_questions = serializers.IntegerField(source='exam_questions.count', read_only=True)
    created_by_email = serializers.CharField(source='created_by.email', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'subject', 'instructions',
            'duration_minutes', 'total_marks', 'passing_marks', 'start_time', 'end_time',
            'randomize_questions', 'negative_marking_enabled', 'negative_marks_per_wrong',
            'allowed_students', 'department', 'semester', 'is_published',
            'question_ids', 'total_questions', 'created_by', 'created_by_email', 'created_at',
        ]
        read_only_fields = ['is_published', 'created_by', 'created_at']

    def validate(self, attrs):
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and start >= end:
            raise serializers.ValidationError({'end_time': "End time must be after the start time."})
        return attrs

    def validate_question_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("Duplicate question ids.")
        found = set(Question.objects.filter(id__in=value).values_list('id', flat=True))
        missing = [qid for qid in value if qid not in found]
        if missing:
            raise serializers.ValidationError(f"Unknown question ids: {missing}")
        return value

    @staticmethod
    def set_questions(exam, question_ids):
        exam.exam_questions.all().delete()
        ExamQuestion.objects.bulk_create([
            ExamQuestion(exam=exam, question_id=qid, order=index)
            for index, qid in enumerate(question_ids)
        ])

    @transaction.atomic
    def create(self, validated_data):
        question_ids = validated_data.pop('question_ids', [])
        allowed = validated_data.pop('allowed_students', [])
        exam = Exam.objects.create(**validated_data)
        exam.allowed_students.set(allowed)
        self.set_questions(exam, question_ids)
        return exam

    @transaction.atomic
    def update(self, instance, validated_data):
        question_ids = validated_data.pop('question_ids', None)
        instance = super().update(instance, validated_data)
        if question_ids is not None:
            self.set_questions(instance, question_ids)
        return instance


class ExamListSerializer(serializers.ModelSerializer):
    """What a student sees before starting: no questions, no access lists."""
    total_questions = serializers.IntegerField(source='exam_questions.count', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'subject', 'instructions', 'duration_minutes',
            'total_marks', 'passing_marks', 'start_time', 'end_time',
            'negative_marking_enabled', 'negative_marks_per_wrong', 'total_questions',
        ]


class ExamDetailSerializer(ExamSerializer):
    """Detailed view for faculty: ordered questions with answers."""
    questions = serializers.SerializerMethodField()

    class Meta(ExamSerializer.Meta):
        fields = ExamSerializer.Meta.fields + ['questions']

    def get_questions(self, obj):
        links = obj.exam_questions.select_related('question').prefetch_related(
            'question__options', 'question__test_cases',
        )
        return [dict(QuestionSerializer(link.question).data, order=link.order) for link in links]
