"""Pytest configuration and fixtures for packguard tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from packguard.config import Configuration


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_app_path() -> Path:
    """Get path to the sample Ruby application."""
    return Path(__file__).parent / "fixtures" / "sample_app"


@pytest.fixture
def ruby_app(temp_dir: Path, sample_app_path: Path) -> Path:
    """A writable copy of the sample application.

    Packages: the root package, ``components/sales`` (enforces
    dependencies) and ``components/billing`` (enforces dependencies and
    privacy). ``Sales::Order`` and the root's ``Report`` both reference
    the private ``Billing::Invoice``.
    """
    root = temp_dir / "shop"
    shutil.copytree(sample_app_path, root)
    return root


@pytest.fixture
def configuration(ruby_app: Path) -> Configuration:
    return Configuration.from_path(ruby_app)
