# elmcore/dtc/__init__.py
from .codec import (
    code_to_word,
    codes_from_data,
    decode_dtc_bytes,
    is_valid_code,
    parse_dtc_reply,
    word_to_code,
)
from .database import (
    DTCCategory,
    DTCDatabase,
    DTCDefinition,
    DTCSeverity,
    DTCStatus,
    DtcInfo,
    generic_description,
)

# Service id used to read each kind of code
DTC_MODES = {
    DTCStatus.STORED: "03",
    DTCStatus.PENDING: "07",
    DTCStatus.PERMANENT: "0A",
}

__all__ = [
    "code_to_word",
    "codes_from_data",
    "decode_dtc_bytes",
    "is_valid_code",
    "parse_dtc_reply",
    "word_to_code",
    "DTCCategory",
    "DTCDatabase",
    "DTCDefinition",
    "DTCSeverity",
    "DTCStatus",
    "DtcInfo",
    "generic_description",
    "DTC_MODES",
]
