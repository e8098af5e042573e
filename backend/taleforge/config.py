"""
配置管理模块
"""
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# 加载环境变量
load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseModel):
    """应用配置"""

    # Gemini API 配置（敌人决策 + 叙事）
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_flash_model: str = os.getenv("GEMINI_FLASH_MODEL", "gemini-3-flash-preview")

    # Gemini 3 思考配置
    # thinking_level: 思考层级 - "lowest", "low", "medium", "high"
    thinking_enabled: bool = os.getenv("THINKING_ENABLED", "false").lower() == "true"
    thinking_level: Literal["lowest", "low", "medium", "high"] = "low"

    # 决策调用（超时 + 线性退避重试）
    decision_max_retries: int = int(os.getenv("DECISION_MAX_RETRIES", "3"))
    decision_timeout_seconds: float = float(os.getenv("DECISION_TIMEOUT_SECONDS", "5.0"))
    decision_retry_delay_seconds: float = float(os.getenv("DECISION_RETRY_DELAY_SECONDS", "0.5"))
    decision_max_tokens: int = 150
    narration_max_tokens: int = 200
    narration_enabled: bool = os.getenv("NARRATION_ENABLED", "true").lower() != "false"

    # 表现层等待（看门狗）
    animation_timeout_seconds: float = float(os.getenv("ANIMATION_TIMEOUT_SECONDS", "3.0"))
    victory_timeout_seconds: float = float(os.getenv("VICTORY_TIMEOUT_SECONDS", "10.0"))

    # 战斗状态
    combat_log_size: int = 5

    # 数据目录（敌人/技能 JSON）
    data_dir: str = os.getenv("TALEFORGE_DATA_DIR", str(_DEFAULT_DATA_DIR))

    model_config = ConfigDict(case_sensitive=False)


# 全局配置实例
settings = Settings()


def validate_config() -> bool:
    """
    验证配置是否完整

    缺少 API Key 不致命：敌人决策走确定性兜底，叙事走模板文本。

    Returns:
        bool: 配置是否完整
    """
    if not settings.gemini_api_key:
        logger.warning("[config] 未设置 GEMINI_API_KEY，将使用确定性兜底决策")
        return False

    if not Path(settings.data_dir).exists():
        logger.warning("[config] 数据目录不存在: %s", settings.data_dir)
        return False

    return True
