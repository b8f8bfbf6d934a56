import re

import orjson

# Data stream channel tags
REASONING_TAG = "g"
CONTENT_TAG = "0"
ERROR_TAG = "3"
ANNOTATION_TAG = "8"

_ESCAPES = {"\\\\": "\\", '\\"': '"', "\\n": "\n", "\\r": "\r", "\\t": "\t"}
_ESCAPE_RE = re.compile(r'\\[\\"nrt]')


def encode_content(text: str) -> str:
    """Escape text for a quoted data stream payload.

    Backslashes go first so the escapes added afterwards are not doubled.
    """
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def decode_content(text: str) -> str:
    """Inverse of encode_content."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)


def format_frame(tag: str, text: str) -> str:
    """Format a tagged data stream line, e.g. ``0:"hello"``."""
    return f'{tag}:"{encode_content(text)}"\n'


def format_annotation(text: str) -> str:
    """Format the raw annotation payload for a structured block."""
    return f"{encode_content(text)}\n"


def format_annotation_frame(payload: str) -> str:
    """Wrap an annotation payload as a data stream message-annotation line."""
    return f"{ANNOTATION_TAG}:{orjson.dumps([payload]).decode()}\n"
