"""Ensure version metadata stays in sync across the project."""

from __future__ import annotations

from pathlib import Path

import nestconf
from nestconf.version import (
    MIN_PYTHON_VERSION,
    PROJECT_VERSION,
    PYTHON_REQUIRES_SPECIFIER,
    VERSION_INFO,
)

ROOT_DIR = Path(__file__).resolve().parents[1]


def test_version_single_source_of_truth() -> None:
    assert (ROOT_DIR / "VERSION").read_text(encoding="utf-8").strip() == PROJECT_VERSION
    assert nestconf.__version__ == PROJECT_VERSION
    assert ".".join(str(part) for part in VERSION_INFO) == PROJECT_VERSION


def test_setup_uses_shared_python_requirement() -> None:
    setup_text = (ROOT_DIR / "setup.py").read_text(encoding="utf-8")

    assert "PYTHON_REQUIRES_SPECIFIER" in setup_text
    assert PYTHON_REQUIRES_SPECIFIER == ">={}.{}".format(*MIN_PYTHON_VERSION)
