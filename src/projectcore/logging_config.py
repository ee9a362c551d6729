"""로깅 설정 모듈

애플리케이션 진입점에서 호출합니다 (ProjectCore.from_env(configure_logging=True)).
"""

import logging
from datetime import datetime
from pathlib import Path

from projectcore.config import Config


def setup_logging() -> logging.Logger:
    """로깅 설정 및 로거 반환

    일자별 로그 파일과 콘솔 출력을 함께 설정합니다.
    Config.DEBUG가 켜져 있으면 러너/메서드의 DEBUG 로그까지 출력합니다.
    """
    log_dir = Path(Config.get_log_path())
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"projectcore_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=logging.DEBUG if Config.DEBUG else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    # asyncio 디버그 로그는 DEBUG 모드에서도 경고 이상만 출력
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return logging.getLogger("projectcore")
