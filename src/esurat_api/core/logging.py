"""日志初始化。"""

import logging

from esurat_api.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """按配置初始化根日志，重复调用不会重复挂载处理器。"""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("esurat_api").setLevel(level)
