"""
Provider 注册表

- enums: Provider / 认证方式 / 推理强度枚举
- metadata: Provider 静态定义与别名解析
- auth: 凭证注入
"""

from handsoff.core.providers.auth import AuthHandler, get_auth_handler
from handsoff.core.providers.enums import (
    AuthMethod,
    BillingMode,
    LLMProvider,
    PricingProvider,
    ReasoningEffort,
)
from handsoff.core.providers.metadata import (
    ProviderDefinition,
    get_provider_definition,
    is_llm_provider,
    provider_for_model_id,
    resolve_gateway_provider,
)

__all__ = [
    "AuthHandler",
    "AuthMethod",
    "BillingMode",
    "LLMProvider",
    "PricingProvider",
    "ProviderDefinition",
    "ReasoningEffort",
    "get_auth_handler",
    "get_provider_definition",
    "is_llm_provider",
    "provider_for_model_id",
    "resolve_gateway_provider",
]
