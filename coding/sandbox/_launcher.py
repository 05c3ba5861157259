"""
Exec shim for the local sandbox.

Runs as its own interpreter (python -I _launcher.py ...), applies rlimits to
itself and then replaces itself with the target program, so limits are set
without a preexec_fn in the threaded grading process.

Usage: _launcher.py AS_BYTES CPU_SECONDS FSIZE_BYTES -- argv...
A limit of 0 leaves that resource untouched. Core dumps are always disabled.
"""
import os
import resource
import sys

LAUNCH_FAILURE_EXIT = 127
LAUNCH_FAILURE_MARKER = 'sandbox-launch:'


def _limit(which, value):
    if value > 0:
        resource.setrlimit(which, (value, value))


def main(args):
    try:
        sep = args.index('--')
    except ValueError:
        sys.stderr.write(f'{LAUNCH_FAILURE_MARKER} missing -- separator\n')
        return LAUNCH_FAILURE_EXIT
    address_space, cpu_seconds, file_size = (int(v) for v in args[:sep])
    argv = args[sep + 1:]
    try:
        resource.setrlimit(resource.RLIMIT_CORE, (0, 0))
        _limit(resource.RLIMIT_AS, address_space)
        _limit(resource.RLIMIT_CPU, cpu_seconds)
        _limit(resource.RLIMIT_FSIZE, file_size)
        os.execvp(argv[0], argv)
    except (OSError, ValueError) as e:
        sys.stderr.write(f'{LAUNCH_FAILURE_MARKER} {e}\n')
        return LAUNCH_FAILURE_EXIT


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
