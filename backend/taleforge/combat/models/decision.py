"""
敌人决策数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DecisionSource(str, Enum):
    """决策来源"""

    COLLABORATOR = "collaborator"  # 外部决策者（LLM）
    FALLBACK = "fallback"  # 确定性兜底


@dataclass
class Decision:
    """校验后的决策：动作ID + 目标记号"""

    action_id: Optional[str]
    target: Optional[str]
    source: DecisionSource = DecisionSource.FALLBACK
    reasoning: Optional[str] = None


class DecisionPayload(BaseModel):
    """外部决策者返回的 JSON（宽松解析，多余字段忽略）"""

    model_config = ConfigDict(extra="ignore")

    action_id: str = Field(..., min_length=1)
    target: Optional[str] = None
    reasoning: Optional[str] = None
