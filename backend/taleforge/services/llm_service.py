"""
LLM 服务模块 - 敌人决策 / 战斗叙事的 Gemini 协作者
"""
from typing import Any, Optional

from google import genai
from google.genai import types

from ..config import settings


class LLMServiceError(RuntimeError):
    """Gemini 调用失败"""


class LLMService:
    """
    LLM 服务类

    实现 DecisionCollaborator 接口（complete）。超时与重试由决策适配器负责，
    这里只做单次调用并把空响应视为失败。
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Any = None,
    ):
        """初始化 Gemini API"""
        self.client = client or genai.Client(api_key=api_key or settings.gemini_api_key)
        self.flash_model = model or settings.gemini_flash_model

    def _get_thinking_config(self) -> types.ThinkingConfig:
        """构建 Gemini 3 思考配置"""
        if not settings.thinking_enabled:
            return types.ThinkingConfig(thinking_level="low", include_thoughts=False)
        return types.ThinkingConfig(thinking_level=settings.thinking_level, include_thoughts=False)

    @staticmethod
    def _extract_text(response: Any) -> str:
        """只取回答部分，跳过思考内容"""
        text = ""
        if hasattr(response, "candidates") and response.candidates:
            for part in response.candidates[0].content.parts or []:
                if getattr(part, "text", None) and not getattr(part, "thought", False):
                    text += part.text

        if not text and getattr(response, "text", None):
            text = response.text
        return text.strip()

    async def complete(self, prompt: str, *, max_tokens: int) -> str:
        """
        单次文本生成（Gemini Flash）

        Args:
            prompt: 提示文本
            max_tokens: 最大输出 token

        Returns:
            生成的文本

        Raises:
            LLMServiceError: 调用失败或响应为空
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self.flash_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    max_output_tokens=max_tokens,
                    thinking_config=self._get_thinking_config(),
                ),
            )
        except Exception as e:
            raise LLMServiceError(f"文本生成失败: {str(e)}") from e

        text = self._extract_text(response)
        if not text:
            raise LLMServiceError("文本生成失败: 空响应")
        return text
