"""Pytest 설정"""

import os
import sys
from pathlib import Path

import pytest

# 테스트 환경 변수 설정 (.env 값보다 우선)
os.environ.setdefault("PROJECTCORE_DEBUG", "false")
os.environ.pop("PROJECTCORE_CONFIG_FILES", None)
os.environ.pop("PROJECTCORE_TASKS_PATH", None)

# src 경로 추가
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from projectcore import ProjectCore  # noqa: E402


@pytest.fixture()
def core() -> ProjectCore:
    return ProjectCore()


@pytest.fixture()
def reported() -> list:
    """Collects errors sent to a reporter callable (``reported.append``)."""
    return []
