from datetime import timedelta

from django.core.management.base import BaseCommand

from assessments.services import AttemptLifecycle


class Command(BaseCommand):
    help = 'Marks in-progress attempts whose time has run out as abandoned'

    def add_arguments(self, parser):
        parser.add_argument(
            '--grace-minutes', type=int, default=5,
            help='Extra minutes past the deadline before an attempt is abandoned',
        )

    def handle(self, *args, **options):
        grace = timedelta(minutes=options['grace_minutes'])
        abandoned = AttemptLifecycle().abandon_expired(grace=grace)
        for attempt in abandoned:
            self.stdout.write(f"Abandoned attempt {attempt.pk} (exam {attempt.exam_id}, student {attempt.student_id})")
        self.stdout.write(self.style.SUCCESS(f"{len(abandoned)} attempt(s) abandoned"))
