from chatstream.providers.base import OpenAIFormatProvider


class OpenAIProvider(OpenAIFormatProvider):
    """OpenAI GPT provider."""

    name = "openai"


class DeepSeekProvider(OpenAIFormatProvider):
    """DeepSeek models served through the DashScope OpenAI-compatible endpoint."""

    name = "deepseek"
