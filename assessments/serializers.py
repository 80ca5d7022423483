from rest_framework import serializers

from exams.models import Exam, Question
from exams.serializers import QuestionSerializer
from .models import ExamAttempt, AttemptAnswer


class StudentQuestionSerializer(serializers.ModelSerializer):
    """Question as shown to an exam taker: no correct flags, no hidden tests."""
    question_text = serializers.CharField(source='text', read_only=True)
    options = serializers.SerializerMethodField()
    test_cases = serializers.SerializerMethodField()

    class Meta:
        model = Question
        fields = ['id', 'question_text', 'question_type', 'points', 'options', 'code_template', 'test_cases']

    def get_options(self, obj):
        return [{'id': option.id, 'text': option.text} for option in obj.options.all()]

    def get_test_cases(self, obj):
        return [
            {'input': case.input, 'expected_output': case.expected_output}
            for case in obj.test_cases.all() if not case.is_hidden
        ]


class AttemptAnswerSerializer(serializers.ModelSerializer):
    question = serializers.SerializerMethodField()

    class Meta:
        model = AttemptAnswer
        fields = ['question', 'position', 'answer', 'time_taken_seconds', 'is_correct', 'marks_obtained']

    def get_question(self, obj):
        # Correct answers are revealed to evaluators, and to students once graded
        if self.context.get('reveal_answers'):
            return QuestionSerializer(obj.question).data
        return StudentQuestionSerializer(obj.question).data


class AttemptExamSerializer(serializers.ModelSerializer):
    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'subject', 'duration_minutes', 'total_marks',
            'passing_marks', 'instructions', 'start_time', 'end_time',
        ]


class ExamAttemptListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for lists / history."""
    exam = AttemptExamSerializer(read_only=True)
    student_email = serializers.CharField(source='student.email', read_only=True)
    student_name = serializers.CharField(source='student.get_full_name', read_only=True)
    roll_number = serializers.CharField(source='student.roll_number', read_only=True)

    class Meta:
        model = ExamAttempt
        fields = [
            'id', 'exam', 'student', 'student_email', 'student_name', 'roll_number', 'status',
            'started_at', 'submitted_at', 'total_marks_obtained', 'percentage', 'is_passed',
            'evaluated_at',
        ]
        read_only_fields = fields


class ExamAttemptSerializer(ExamAttemptListSerializer):
    """Full attempt including its answer sheet."""
    answers = serializers.SerializerMethodField()
    deadline = serializers.DateTimeField(read_only=True)
    evaluated_by_email = serializers.CharField(source='evaluated_by.email', read_only=True, default=None)

    class Meta(ExamAttemptListSerializer.Meta):
        fields = ExamAttemptListSerializer.Meta.fields + [
            'deadline', 'evaluated_by', 'evaluated_by_email', 'feedback', 'answers',
        ]
        read_only_fields = fields

    def get_answers(self, obj):
        answers = obj.answers.select_related('question').prefetch_related('question__options', 'question__test_cases')
        return AttemptAnswerSerializer(answers, many=True, context=self.context).data


# --- Write payloads ---

class SaveAnswerSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    answer = serializers.JSONField(allow_null=True)
    time_taken_seconds = serializers.IntegerField(min_value=0, required=False)


class AnswerScoreSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    marks_obtained = serializers.DecimalField(max_digits=6, decimal_places=2)


class EvaluateAttemptSerializer(serializers.Serializer):
    answers = AnswerScoreSerializer(many=True)
    feedback = serializers.CharField(allow_blank=True, required=False, default="")
