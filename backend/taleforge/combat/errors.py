"""
战斗异常
"""
from typing import Optional


class CombatError(RuntimeError):
    """战斗核心异常基类"""


class DecisionUnavailableError(CombatError):
    """外部决策者在全部重试后仍然超时/失败（回合级可重试错误）"""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error!r}" if last_error is not None else ""
        super().__init__(f"decision unavailable after {attempts} attempts{detail}")


class InvalidDecisionError(CombatError):
    """决策无法解析或动作不合法（在适配器内部转为兜底决策，不向外抛出）"""


class CombatStateError(CombatError):
    """当前阶段不允许该操作（例如战斗结束后继续行动）"""
