"""
Provider 请求构建与流解码

每个 Provider 目录提供 request_builder（规范上下文 -> 上游请求）
与 stream_parser（上游流式块 -> 文本增量）；按 Provider 分派见 registry。
"""
