"""
客户端与网关之间的代理信封
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProxyEnvelope(BaseModel):
    """
    代理请求信封

    bodyData 为任意 JSON 值，网关原样重新编码后作为上游请求体；
    只允许在 headers / endpoint 上注入凭证。
    """

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(..., description="Provider 标识（大小写不敏感）")
    endpoint: str = Field(..., description="上游完整 URL")
    method: str | None = Field("POST", description="HTTP 方法（null 视为 POST）")
    headers: dict[str, str] = Field(default_factory=dict, description="透传给上游的 header")
    body_data: Any = Field(None, alias="bodyData", description="上游请求体（JSON 值）")

    @property
    def normalized_method(self) -> str:
        return (self.method or "POST").upper()

    def body_bytes(self) -> bytes | None:
        """重新编码 bodyData；None 表示无请求体"""
        if self.body_data is None:
            return None
        return json.dumps(self.body_data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    def to_wire(self) -> bytes:
        payload = {
            "provider": self.provider,
            "endpoint": self.endpoint,
            "method": self.normalized_method,
            "headers": self.headers,
            "bodyData": self.body_data,
        }
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


__all__ = ["ProxyEnvelope"]
