from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    exam_title = serializers.CharField(source='related_exam.title', read_only=True, default=None)
    exam_start_time = serializers.DateTimeField(source='related_exam.start_time', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            'id', 'title', 'message', 'type', 'priority',
            'related_exam', 'exam_title', 'exam_start_time', 'is_read', 'created_at',
        ]
        read_only_fields = fields
