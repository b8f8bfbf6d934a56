from chatstream.utils.sse import decode_content, encode_content, format_frame
from chatstream.utils.message_helpers import normalize_messages

__all__ = ["decode_content", "encode_content", "format_frame", "normalize_messages"]
