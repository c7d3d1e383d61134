"""
Versioned envelope for the import data document.

An import file is a JSON object ``{"format": "seed-import-v1",
"encrypted": bool, "data": ...}``.  Unencrypted files carry the import
data as a plain object.  Encrypted files carry a base64 string laid out
as ``salt (32) | iv (12) | tag (16) | ciphertext``, sealed with
AES-256-GCM under a key derived from the password with
PBKDF2-HMAC-SHA256.

New layouts get a new ``format`` value; unknown values are rejected.
"""

from __future__ import annotations

import base64
import json
import secrets
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from ..models.session import IMPORT_FILE_FORMAT, SeedImportData, SeedImportFileV1
from ..utils.errors import ImportFileError

SALT_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt(plaintext: str, password: str) -> str:
    """Encrypt ``plaintext`` with a fresh salt and IV; returns base64."""
    salt = secrets.token_bytes(SALT_LENGTH)
    iv = secrets.token_bytes(IV_LENGTH)
    sealed = AESGCM(_derive_key(password, salt)).encrypt(iv, plaintext.encode("utf-8"), None)
    # AESGCM appends the tag; the wire layout puts it before the ciphertext.
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")


def decrypt(blob: str, password: str) -> str:
    """
    Reverse :func:`encrypt`.

    :raises ImportFileError: if the blob is malformed, the password is
        wrong or the data was tampered with.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (ValueError, TypeError) as e:
        raise ImportFileError("Encrypted import data is not valid base64") from e

    header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
    if len(raw) < header:
        raise ImportFileError("Encrypted import data is truncated")

    salt = raw[:SALT_LENGTH]
    iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    tag = raw[SALT_LENGTH + IV_LENGTH:header]
    ciphertext = raw[header:]
    try:
        plaintext = AESGCM(_derive_key(password, salt)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise ImportFileError("Failed to decrypt import file: wrong password or corrupted data") from e
    return plaintext.decode("utf-8")


def create_import_file(data: SeedImportData, password: Optional[str] = None) -> SeedImportFileV1:
    """Wrap ``data`` in the v1 envelope, encrypting it when a password is given."""
    if password:
        payload = json.dumps(data.to_json_dict(), ensure_ascii=False)
        return SeedImportFileV1(format=IMPORT_FILE_FORMAT, encrypted=True, data=encrypt(payload, password))
    return SeedImportFileV1(format=IMPORT_FILE_FORMAT, encrypted=False, data=data)


def serialize_import_file(file: SeedImportFileV1) -> str:
    return json.dumps(file.to_json_dict(), ensure_ascii=False)


def parse_import_file(content: Union[str, Dict[str, Any]], password: Optional[str] = None) -> SeedImportData:
    """
    Decode an import file into its :class:`SeedImportData`.

    :param content: The serialized envelope, or an already-loaded dict.
    :param password: Required when the file is encrypted.
    :raises ImportFileError: on an unknown format, a missing password,
        a failed decryption or malformed data.
    """
    if isinstance(content, str):
        try:
            envelope = json.loads(content)
        except json.JSONDecodeError as e:
            raise ImportFileError(f"Import file is not valid JSON: {e}") from e
    else:
        envelope = content

    if not isinstance(envelope, dict):
        raise ImportFileError("Import file must be a JSON object")

    fmt = envelope.get("format")
    if fmt != IMPORT_FILE_FORMAT:
        raise ImportFileError(f"Unsupported import file format: {fmt!r}")

    data = envelope.get("data")
    if envelope.get("encrypted"):
        if not password:
            raise ImportFileError("Import file is encrypted; a password is required")
        if not isinstance(data, str):
            raise ImportFileError("Encrypted import file has no ciphertext")
        try:
            data = json.loads(decrypt(data, password))
        except json.JSONDecodeError as e:
            raise ImportFileError("Decrypted import data is not valid JSON") from e

    try:
        return SeedImportData.model_validate(data)
    except ValidationError as e:
        raise ImportFileError(f"Import data is malformed: {e}") from e


def load_import_file(content: Union[str, Dict[str, Any]]) -> SeedImportFileV1:
    """Validate an envelope without decoding its data."""
    envelope = json.loads(content) if isinstance(content, str) else content
    if not isinstance(envelope, dict) or envelope.get("format") != IMPORT_FILE_FORMAT:
        fmt = envelope.get("format") if isinstance(envelope, dict) else None
        raise ImportFileError(f"Unsupported import file format: {fmt!r}")
    try:
        return SeedImportFileV1.model_validate(envelope)
    except ValidationError as e:
        raise ImportFileError(f"Import file is malformed: {e}") from e
