"""
Grade (or regrade) stored submissions from the command line.
Usage: python manage.py grade_submission <submission_id> [<submission_id> ...]
       python manage.py grade_submission --pending
"""
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from coding.exceptions import GradingRequestError
from coding.gateway import build_gateway
from coding.models import CodingSubmission


class Command(BaseCommand):
    help = 'Run stored submissions against their assignment test cases and save the results'

    def add_arguments(self, parser):
        parser.add_argument('submission_ids', nargs='*', help='Submission UUIDs to grade')
        parser.add_argument(
            '--pending',
            action='store_true',
            help='Grade every submission that has not been graded yet',
        )

    def handle(self, *args, **options):
        ids = list(options['submission_ids'])
        if options['pending']:
            ids += [
                str(pk) for pk in CodingSubmission.objects.filter(
                    status=CodingSubmission.STATUS_SUBMITTED,
                ).values_list('id', flat=True)
            ]
        if not ids:
            raise CommandError('Give at least one submission id or --pending')

        gateway = build_gateway()
        failed = 0
        for submission_id in ids:
            try:
                submission = CodingSubmission.objects.filter(pk=submission_id).first()
            except ValidationError:
                submission = None
            if not submission:
                failed += 1
                self.stdout.write(self.style.ERROR(f'{submission_id}: submission not found'))
                continue
            try:
                payload = gateway.grade({
                    'submissionId': str(submission.id),
                    'code': submission.submitted_code,
                    'assignmentId': str(submission.assignment_id),
                    'language': submission.language,
                })
            except GradingRequestError as e:
                failed += 1
                self.stdout.write(self.style.ERROR(f'{submission_id}: {e.detail}'))
                continue
            self.stdout.write(self.style.SUCCESS(
                f"{submission_id}: {payload['passedTests']}/{payload['totalTests']} passed, "
                f"auto grade {payload['autoGrade']}"
            ))

        if failed:
            raise CommandError(f'{failed} submission(s) could not be graded')
