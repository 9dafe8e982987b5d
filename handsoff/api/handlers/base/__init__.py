from handsoff.api.handlers.base.request_builder import ProviderRequest, RequestBuilder
from handsoff.api.handlers.base.stream_parser import StreamDecoder

__all__ = ["ProviderRequest", "RequestBuilder", "StreamDecoder"]
