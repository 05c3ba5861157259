"""
Output comparison for test cases.

Default mode strips trailing whitespace/newlines from both sides and then
requires exact equality. Leading whitespace, inner spacing, case and number
formatting are all significant.
"""

TRAILING = 'trailing'
LINES = 'lines'

COMPARISON_CHOICES = [
    (TRAILING, 'Exact (trailing whitespace ignored)'),
    (LINES, 'Per-line (trailing whitespace on each line and CRLF ignored)'),
]


def normalize_output(s, mode=TRAILING):
    """Normalize program output for comparison."""
    if s is None:
        return ''
    if mode == LINES:
        lines = s.replace('\r\n', '\n').replace('\r', '\n').split('\n')
        return '\n'.join(line.rstrip() for line in lines).rstrip()
    return s.rstrip()


def outputs_match(actual, expected, mode=TRAILING):
    """Compare normalized stdout to expected."""
    return normalize_output(actual, mode) == normalize_output(expected, mode)
