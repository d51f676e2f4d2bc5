"""Nox sessions for hostform."""

from __future__ import annotations

import nox

nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True

nox.options.sessions = ["lint", "type_check", "tests"]

PYTHON_VERSIONS = ["3.11", "3.12"]
PYTHON_DEFAULT = "3.11"

SRC_DIR = "src"
TESTS_DIR = "tests"
PYTHON_PATHS = [SRC_DIR, TESTS_DIR, "noxfile.py"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the test suite with pytest.

    Usage:
        nox -s tests           # Run on all Python versions
        nox -s tests-3.11      # Run on Python 3.11 only
        nox -s tests -- -k test_engine  # Run specific tests
        nox -s tests -- -x     # Stop on first failure
    """
    session.install("pytest", "pytest-cov", "pytest-mock")
    session.install("-e", ".")

    args = session.posargs or []
    session.run(
        "pytest",
        "--cov=hostform",
        "--cov-report=term-missing",
        "--cov-report=html",
        *args,
    )


@nox.session(python=PYTHON_DEFAULT)
def lint(session: nox.Session) -> None:
    """Run ruff linting checks.

    Usage:
        nox -s lint            # Check for linting issues
        nox -s lint -- --fix   # Auto-fix issues
    """
    session.install("ruff")

    args = session.posargs or []
    if "--fix" in args:
        args = [a for a in args if a != "--fix"]
        session.run("ruff", "check", "--fix", *PYTHON_PATHS, *args)
    else:
        session.run("ruff", "check", *PYTHON_PATHS, *args)


@nox.session(name="format", python=PYTHON_DEFAULT)
def format_(session: nox.Session) -> None:
    """Format code with ruff.

    Usage:
        nox -s format          # Check formatting (CI mode)
        nox -s format -- --write  # Apply formatting
    """
    session.install("ruff")

    args = session.posargs or []
    if "--write" in args:
        args = [a for a in args if a != "--write"]
        session.run("ruff", "check", "--select", "I", "--fix", *PYTHON_PATHS, *args)
        session.run("ruff", "format", *PYTHON_PATHS, *args)
    else:
        session.run("ruff", "check", "--select", "I", *PYTHON_PATHS, *args)
        session.run("ruff", "format", "--check", *PYTHON_PATHS, *args)


@nox.session(python=PYTHON_DEFAULT)
def type_check(session: nox.Session) -> None:
    """Run mypy type checking.

    Usage:
        nox -s type_check      # Run type checking
    """
    session.install("mypy", "types-PyYAML")
    session.install("-e", ".")

    session.run("mypy", f"{SRC_DIR}/hostform", *session.posargs)


