"""
Per-language build/run strategies.

Each profile owns its source file name and the argv templates for the
optional compile step and the run step. Backends fill the templates with
their own tool paths, so the same profile drives the local and the docker
sandbox.
"""
import re
from dataclasses import dataclass

PYTHON = 'python'
JAVASCRIPT = 'javascript'
JAVA = 'java'
C = 'c'
CPP = 'cpp'

LANGUAGE_CHOICES = [
    (PYTHON, 'Python'),
    (JAVASCRIPT, 'JavaScript'),
    (JAVA, 'Java'),
    (C, 'C'),
    (CPP, 'C++'),
]

_JAVA_CLASS_RE = re.compile(r'public\s+(?:final\s+|abstract\s+)*class\s+([A-Za-z_$][\w$]*)')


@dataclass(frozen=True)
class LanguageProfile:
    name: str
    extension: str
    run: tuple
    compile: tuple = ()
    # JVM reserves far more address space than it uses; heap is capped with -Xmx instead
    limit_address_space: bool = True

    @property
    def needs_compile(self):
        return bool(self.compile)

    @property
    def tools(self):
        """Tool placeholders referenced by the templates, e.g. ('javac', 'java')."""
        names = []
        for part in self.compile + self.run:
            for match in re.findall(r'\{(\w+)\}', part):
                if match not in _CONTEXT_KEYS and match not in names:
                    names.append(match)
        return tuple(names)

    def entry_name(self, code):
        if self.name == JAVA:
            match = _JAVA_CLASS_RE.search(code or '')
            return match.group(1) if match else 'Main'
        return 'solution'

    def source_filename(self, code):
        return f'{self.entry_name(code)}.{self.extension}'

    def compile_argv(self, code, tools, memory_mb):
        return self._render(self.compile, code, tools, memory_mb)

    def run_argv(self, code, tools, memory_mb):
        return self._render(self.run, code, tools, memory_mb)

    def _render(self, template, code, tools, memory_mb):
        context = dict(tools)
        context.update({
            'source': self.source_filename(code),
            'entry': self.entry_name(code),
            'memory_mb': str(memory_mb),
        })
        return [part.format(**context) for part in template]


_CONTEXT_KEYS = ('source', 'entry', 'memory_mb')

LANGUAGES = {
    PYTHON: LanguageProfile(
        name=PYTHON,
        extension='py',
        run=('{python}', '-I', '{source}'),
    ),
    JAVASCRIPT: LanguageProfile(
        name=JAVASCRIPT,
        extension='js',
        run=('{node}', '--max-old-space-size={memory_mb}', '{source}'),
        limit_address_space=False,
    ),
    JAVA: LanguageProfile(
        name=JAVA,
        extension='java',
        compile=('{javac}', '-encoding', 'UTF-8', '{source}'),
        run=('{java}', '-Xmx{memory_mb}m', '-Xss16m', '-cp', '.', '{entry}'),
        limit_address_space=False,
    ),
    C: LanguageProfile(
        name=C,
        extension='c',
        compile=('{gcc}', '-std=c11', '-O2', '-o', '{entry}', '{source}', '-lm'),
        run=('./{entry}',),
    ),
    CPP: LanguageProfile(
        name=CPP,
        extension='cpp',
        compile=('{gxx}', '-std=c++17', '-O2', '-o', '{entry}', '{source}'),
        run=('./{entry}',),
    ),
}

SUPPORTED_LANGUAGES = tuple(LANGUAGES)


def get_profile(language):
    """Look up the profile for a language identifier (case-insensitive)."""
    key = (language or '').strip().lower()
    if key in ('js', 'node'):
        key = JAVASCRIPT
    elif key in ('c++', 'cxx'):
        key = CPP
    try:
        return LANGUAGES[key]
    except KeyError:
        raise ValueError(f"Unsupported language: {language}")
