"""
The versioned, optionally password-encrypted import file format.
"""

from .import_file import (
    create_import_file,
    decrypt,
    encrypt,
    load_import_file,
    parse_import_file,
    serialize_import_file,
)

__all__ = [
    "create_import_file",
    "decrypt",
    "encrypt",
    "load_import_file",
    "parse_import_file",
    "serialize_import_file",
]
