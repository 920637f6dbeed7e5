# elmcore/protocol/__init__.py
from .codec import (
    clean_response,
    encode_command,
    encode_request,
    is_positive_ack,
    parse_response,
    response_prefix,
    split_command,
)
from .normalize import ERROR_TOKENS, find_error_token, meaningful_lines, split_lines
from .frames import group_by_ecu, ecu_order, split_header
from .isotp import strip_pci, merge_frames
from .ascii import extract_ascii, is_valid_vin

__all__ = [
    "clean_response",
    "encode_command",
    "encode_request",
    "is_positive_ack",
    "parse_response",
    "response_prefix",
    "split_command",
    "ERROR_TOKENS",
    "find_error_token",
    "meaningful_lines",
    "split_lines",
    "group_by_ecu",
    "ecu_order",
    "split_header",
    "strip_pci",
    "merge_frames",
    "extract_ascii",
    "is_valid_vin",
]
