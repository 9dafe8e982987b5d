"""
网关自定义异常

每个异常带 status_code 与 message，网关层据此生成 {"error": ...} 响应。
"""

from __future__ import annotations


class HandsOffException(Exception):
    """所有业务异常的基类"""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message}


class UnsupportedProviderError(HandsOffException):
    """信封中的 provider 不在网关支持列表内"""

    status_code = 400

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class ProviderKeyNotConfiguredError(HandsOffException):
    """服务端未配置该 Provider 的 API Key"""

    status_code = 500

    def __init__(self, provider: str):
        super().__init__(f"API key not configured for provider: {provider}")
        self.provider = provider


class InvalidEndpointError(HandsOffException):
    """上游 endpoint 无法解析"""

    status_code = 400


class NotAnLLMProviderError(HandsOffException):
    """为非对话类 Provider（如纯音频厂商）构建聊天请求"""

    status_code = 400

    def __init__(self, provider: str):
        super().__init__(f"{provider.capitalize()} is not an LLM provider")
        self.provider = provider


class ApiKeyMissingError(HandsOffException):
    """直连模式下缺少用户自己的 Provider Key"""

    status_code = 401

    def __init__(self, provider: str):
        super().__init__(f"API key missing for provider: {provider}")
        self.provider = provider


class UpstreamHTTPError(HandsOffException):
    """
    上游（Provider 或网关）返回非 2xx

    upstream_response 保留原始响应体，供 extract_error_message 使用。
    """

    def __init__(self, status_code: int, upstream_response: str = ""):
        super().__init__(f"Upstream returned HTTP {status_code}", status_code=status_code)
        self.upstream_response = upstream_response


class MediaGenerationError(HandsOffException):
    """异步媒体任务失败、被取消、超时或结果无法解析"""

    status_code = 502


class InvalidRequestError(HandsOffException):
    """请求体无法解析或缺少必需字段"""

    status_code = 400
