"""Outbound notification events raised by the exam lifecycle.

Delivery always happens after the surrounding transaction commits and a
failing backend is logged, never propagated to the caller.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction
from django.utils.module_loading import import_string

from exams.models import Exam
from .models import Notification

logger = logging.getLogger(__name__)


class Notifier:
    """Interface the lifecycle talks to. The base class drops every event."""

    def result_available(self, student_id, exam_id):
        pass

    def evaluation_complete(self, student_id, exam_id, score, total):
        pass

    def exam_scheduled(self, student_ids, exam_id):
        pass


class DatabaseNotifier(Notifier):
    """Stores events as in-app notifications."""

    def result_available(self, student_id, exam_id):
        exam = Exam.objects.get(pk=exam_id)
        return Notification.objects.create(
            recipient_id=student_id,
            title='Exam Result Available',
            message=f'Your result for "{exam.title}" is now available',
            type=Notification.Type.RESULT,
            priority=Notification.Priority.HIGH,
            related_exam=exam,
        )

    def evaluation_complete(self, student_id, exam_id, score, total):
        exam = Exam.objects.get(pk=exam_id)
        return Notification.objects.create(
            recipient_id=student_id,
            title='Exam Evaluated',
            message=f'Your exam "{exam.title}" has been evaluated. Score: {score}/{total}',
            type=Notification.Type.RESULT,
            priority=Notification.Priority.HIGH,
            related_exam=exam,
        )

    def exam_scheduled(self, student_ids, exam_id):
        exam = Exam.objects.get(pk=exam_id)
        when = exam.start_time.strftime('%Y-%m-%d %H:%M %Z')
        return Notification.objects.bulk_create([
            Notification(
                recipient_id=student_id,
                title='New Exam Scheduled',
                message=f'A new exam "{exam.title}" has been scheduled for {when}',
                type=Notification.Type.EXAM,
                priority=Notification.Priority.HIGH,
                related_exam=exam,
            )
            for student_id in student_ids
        ])


class EmailNotifier(DatabaseNotifier):
    """In-app notification plus an email copy to the recipient."""

    def _mail(self, notifications):
        User = get_user_model()
        for notification in notifications:
            email = User.objects.filter(pk=notification.recipient_id).values_list('email', flat=True).first()
            if not email:
                continue
            send_mail(
                subject=notification.title,
                message=notification.message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[email],
            )
            logger.info("Email sent to %s: %s", email, notification.title)

    def result_available(self, student_id, exam_id):
        notification = super().result_available(student_id, exam_id)
        self._mail([notification])
        return notification

    def evaluation_complete(self, student_id, exam_id, score, total):
        notification = super().evaluation_complete(student_id, exam_id, score, total)
        self._mail([notification])
        return notification

    def exam_scheduled(self, student_ids, exam_id):
        notifications = super().exam_scheduled(student_ids, exam_id)
        self._mail(notifications)
        return notifications


def get_notifier():
    return import_string(settings.EXAM_PORTAL['NOTIFIER'])()


def notify_after_commit(notifier, event, *args):
    """Queue ``notifier.<event>(*args)`` to run once the current transaction commits."""

    def deliver():
        try:
            getattr(notifier, event)(*args)
        except Exception:
            logger.exception("Notification %s%r could not be delivered", event, args)

    transaction.on_commit(deliver)
