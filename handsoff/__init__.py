"""
HandsOff 网关

多 Provider LLM 归一化层 + 计量代理网关。
"""

__version__ = "0.3.0"
