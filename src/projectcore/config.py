"""환경 설정 관리

projectcore 자체의 런타임 설정을 환경변수에서 읽습니다.
- 경로 설정: get_*() 메서드 (cwd 기준 계산 필요)
- 그 외 설정: 클래스 변수 (모듈 로드 시 평가)

애플리케이션 설정 값은 여기가 아니라 ProjectCore.config (ConfigStore)에 둡니다.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _get_path(env_var: str, default_subdir: str) -> str:
    """환경변수가 없으면 현재 경로 하위 폴더 반환"""
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    return str(Path.cwd() / default_subdir)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """문자열을 bool로 변환"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _parse_list(value: str | None) -> List[str]:
    """쉼표로 구분된 문자열을 리스트로 변환"""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """projectcore 런타임 설정

    설정 접근 방식:
    - 경로 관련: get_*() 메서드 (런타임에 cwd 기준 계산)
    - 그 외: 클래스 변수 (모듈 로드 시 평가)
    """

    # ========================================
    # 디버그 설정
    # ========================================
    DEBUG = _parse_bool(os.getenv("PROJECTCORE_DEBUG"), False)

    # ========================================
    # 부트스트랩 설정 (ProjectCore.from_env)
    # ========================================
    CONFIG_FILES = _parse_list(os.getenv("PROJECTCORE_CONFIG_FILES"))
    TASKS_PATH = os.getenv("PROJECTCORE_TASKS_PATH", "")

    # ========================================
    # 경로 설정 (런타임에 cwd 기준 계산)
    # ========================================
    @staticmethod
    def get_log_path() -> str:
        """로그 경로"""
        return _get_path("PROJECTCORE_LOG_PATH", "logs")
