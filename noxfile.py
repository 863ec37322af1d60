"""Nox sessions for prompt-enhancer: tests, coverage, lint, typing and formatting."""

import nox

# Set the default venv backend to uv
nox.options.default_venv_backend = "uv"
# Python versions to test (match requires-python)
PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]
DEFAULT_PYTHON_VERSION = "3.12"

# Source trees checked by linters and formatters
LINT_PATHS = ["src/", "examples/", "noxfile.py"]

nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ["tests", "lint", "type_check"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the offline test suite (fake HTTP session, fake clock)."""
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session(python=DEFAULT_PYTHON_VERSION)
def coverage(session: nox.Session) -> None:
    """Run tests with a coverage report for the prompt_enhancer package."""
    session.install("-e", ".[test]")
    session.run(
        "pytest",
        "--cov=prompt_enhancer",
        "--cov-report=term-missing",
        "--cov-report=html",
        *session.posargs,
    )


@nox.session(python=DEFAULT_PYTHON_VERSION)
def lint(session: nox.Session) -> None:
    """Check style with Ruff and Black."""
    session.install("ruff", "black")
    session.run("ruff", "check", *LINT_PATHS)
    session.run("black", "--check", *LINT_PATHS)


@nox.session(python=DEFAULT_PYTHON_VERSION)
def type_check(session: nox.Session) -> None:
    """Type check the package; tqdm ships no inline annotations, so its stubs are installed."""
    session.install("mypy", "types-tqdm")
    session.install("-e", ".")
    session.run("mypy", "src/prompt_enhancer")


@nox.session(python=DEFAULT_PYTHON_VERSION)
def format(session: nox.Session) -> None:
    """Auto-fix with Ruff and format with Black."""
    session.install("ruff", "black")
    session.run("ruff", "check", "--fix", *LINT_PATHS)
    session.run("black", *LINT_PATHS)


@nox.session(python=DEFAULT_PYTHON_VERSION)
def examples(session: nox.Session) -> None:
    """Byte-compile the examples against the installed package."""
    session.install("-e", ".[examples]")
    session.run("python", "-m", "compileall", "-q", "examples/")
