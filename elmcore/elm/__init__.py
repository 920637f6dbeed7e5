from .initializer import INIT_SEQUENCE, extract_version, run_initializer, step_accepted
from .protocol import PROTOCOL_NAMES, describe_protocol, is_can_protocol, protocol_code

__all__ = [
    "INIT_SEQUENCE",
    "extract_version",
    "run_initializer",
    "step_accepted",
    "PROTOCOL_NAMES",
    "describe_protocol",
    "is_can_protocol",
    "protocol_code",
]
