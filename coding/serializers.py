"""
Serializers for coding app
"""
from rest_framework import serializers

from coding.models import CodingAssignment, CodingSubmission, CodingTestCase
from coding.sandbox import SUPPORTED_LANGUAGES

# Keys withheld from students for hidden test cases
HIDDEN_DETAIL_KEYS = ('input', 'expectedOutput', 'actualOutput', 'error', 'stderr')


def present_results(results, reveal_hidden):
    """
    Results as shown to a caller. Hidden cases keep pass/fail, points and
    timing but lose their input/output detail unless reveal_hidden is set.
    """
    if reveal_hidden:
        return list(results or [])
    presented = []
    for result in results or []:
        if result.get('isHidden'):
            result = dict(result)
            for key in HIDDEN_DETAIL_KEYS:
                result[key] = None
        presented.append(result)
    return presented


class StrictCharField(serializers.CharField):
    """CharField that refuses numbers and booleans instead of coercing them to text."""

    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail('invalid')
        return super().to_internal_value(data)


class StrictUUIDField(serializers.UUIDField):
    """UUIDField that only accepts the textual form."""

    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail('invalid', value=data)
        return super().to_internal_value(data)


class GradeRequestSerializer(serializers.Serializer):
    """Body of POST /api/coding/run-tests."""
    submissionId = StrictUUIDField()
    code = StrictCharField(trim_whitespace=False)
    assignmentId = StrictUUIDField()
    language = StrictCharField()

    def validate_code(self, value):
        if not value.strip():
            raise serializers.ValidationError('This field may not be blank.')
        return value

    def validate_language(self, value):
        language = value.strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            raise serializers.ValidationError(f'Unsupported language: {value}')
        return language


class CodingAssignmentSerializer(serializers.ModelSerializer):
    """Assignment for list/detail"""
    test_case_count = serializers.IntegerField(source='test_cases.count', read_only=True)

    class Meta:
        model = CodingAssignment
        fields = [
            'id', 'title', 'instructions', 'programming_language', 'starter_code',
            'comparison_mode', 'time_limit_seconds', 'memory_limit_mb', 'due_date',
            'test_case_count', 'created_at',
        ]
        read_only_fields = ['id', 'created_at']


class CodingTestCaseSerializer(serializers.ModelSerializer):
    """Test case for teacher list/detail."""

    class Meta:
        model = CodingTestCase
        fields = ['id', 'input_data', 'expected_output', 'is_hidden', 'points', 'description', 'created_at']
        read_only_fields = ['id', 'created_at']


class CodingTestCaseCreateSerializer(serializers.ModelSerializer):
    """Test case create. Accepts `expected` as an alias of expected_output."""
    expected_output = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    expected = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, write_only=True)
    input_data = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    points = serializers.IntegerField(required=False, min_value=1, default=1)

    class Meta:
        model = CodingTestCase
        fields = ['input_data', 'expected_output', 'expected', 'is_hidden', 'points', 'description']

    def validate(self, attrs):
        expected = attrs.pop('expected', None)
        if attrs.get('expected_output') is None:
            if expected is None:
                raise serializers.ValidationError({'expected_output': 'This field is required.'})
            attrs['expected_output'] = expected
        return attrs


class StudentSubmitSerializer(serializers.Serializer):
    """Body of POST /api/student/coding/assignments/{id}/submit."""
    code = StrictCharField(trim_whitespace=False)
    language = StrictCharField(required=False)

    def validate_code(self, value):
        if not value.strip():
            raise serializers.ValidationError('Code is required')
        return value

    def validate_language(self, value):
        language = value.strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            raise serializers.ValidationError(f'Unsupported language: {value}')
        return language


class CodingSubmissionSerializer(serializers.ModelSerializer):
    """Submission with grading results. Hidden detail is suppressed unless context reveal_hidden=True."""
    assignment_title = serializers.CharField(source='assignment.title', read_only=True)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    test_results = serializers.SerializerMethodField()

    class Meta:
        model = CodingSubmission
        fields = [
            'id', 'assignment', 'assignment_title', 'student', 'student_name',
            'submitted_code', 'language', 'status', 'submitted_at',
            'grade', 'feedback', 'test_results', 'passed_tests', 'total_tests',
            'auto_grade', 'graded_at',
        ]
        read_only_fields = fields

    def get_test_results(self, obj):
        return present_results(obj.test_results, self.context.get('reveal_hidden', False))
