import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CodingAssignment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('instructions', models.TextField(blank=True, default='')),
                ('programming_language', models.CharField(choices=[('python', 'Python'), ('javascript', 'JavaScript'), ('java', 'Java'), ('c', 'C'), ('cpp', 'C++')], default='python', max_length=20)),
                ('starter_code', models.TextField(blank=True, default='')),
                ('comparison_mode', models.CharField(choices=[('trailing', 'Exact (trailing whitespace ignored)'), ('lines', 'Per-line (trailing whitespace on each line and CRLF ignored)')], default='trailing', help_text='How stdout is compared to expected output', max_length=20)),
                ('time_limit_seconds', models.FloatField(blank=True, help_text='Per-test-case limit; capped by SANDBOX_MAX_TIMEOUT_SECONDS', null=True)),
                ('memory_limit_mb', models.IntegerField(blank=True, null=True)),
                ('due_date', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, db_column='created_by_id', limit_choices_to={'role': 'teacher'}, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_coding_assignments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Coding Assignment',
                'verbose_name_plural': 'Coding Assignments',
                'db_table': 'coding_assignments',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CodingTestCase',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('input_data', models.TextField(blank=True, default='')),
                ('expected_output', models.TextField(blank=True, default='')),
                ('is_hidden', models.BooleanField(default=False)),
                ('points', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('description', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='test_cases', to='coding.codingassignment')),
            ],
            options={
                'verbose_name': 'Coding Test Case',
                'verbose_name_plural': 'Coding Test Cases',
                'db_table': 'coding_test_cases',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['assignment', 'created_at'], name='coding_case_assign_created')],
            },
        ),
        migrations.CreateModel(
            name='CodingSubmission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('submitted_code', models.TextField()),
                ('language', models.CharField(choices=[('python', 'Python'), ('javascript', 'JavaScript'), ('java', 'Java'), ('c', 'C'), ('cpp', 'C++')], default='python', max_length=20)),
                ('status', models.CharField(choices=[('submitted', 'Submitted'), ('graded', 'Graded'), ('returned', 'Returned')], db_index=True, default='submitted', max_length=20)),
                ('submitted_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('grade', models.IntegerField(blank=True, help_text='Instructor grade', null=True)),
                ('feedback', models.TextField(blank=True, null=True)),
                ('test_results', models.JSONField(blank=True, default=list, help_text='Per-test results [{testCaseId, passed, points, ...}]. Hidden detail is teacher-only.')),
                ('passed_tests', models.IntegerField(blank=True, null=True)),
                ('total_tests', models.IntegerField(blank=True, null=True)),
                ('auto_grade', models.IntegerField(blank=True, null=True)),
                ('graded_at', models.DateTimeField(blank=True, null=True)),
                ('assignment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='coding.codingassignment')),
                ('student', models.ForeignKey(limit_choices_to={'role': 'student'}, on_delete=django.db.models.deletion.CASCADE, related_name='coding_submissions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Coding Submission',
                'verbose_name_plural': 'Coding Submissions',
                'db_table': 'coding_submissions',
                'ordering': ['-submitted_at'],
                'indexes': [
                    models.Index(fields=['student', 'submitted_at'], name='coding_sub_student_at'),
                    models.Index(fields=['assignment', 'student'], name='coding_sub_assign_student'),
                ],
            },
        ),
    ]
