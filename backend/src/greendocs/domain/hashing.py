"""
Content hashing for stored document files.

Uploaded files are stored under a path derived from their hash, which gives
deduplication for free and lets the file store detect a file that was
modified on disk after upload.

Design Decisions:
- SHA-256 chosen for wide support and collision resistance
- Hash computed on raw bytes to avoid encoding issues
"""

import hashlib

HASH_PREFIX = "sha256:"


def compute_document_hash(content: bytes) -> str:
    """
    Compute SHA-256 hash of document content.

    Args:
        content: Raw bytes of the document file (PDF, image, etc.)

    Returns:
        Hex-encoded SHA-256 hash prefixed with 'sha256:'

    Example:
        >>> compute_document_hash(b"rebate form")
        'sha256:5c1f...'
    """
    if not content:
        raise ValueError("Cannot hash empty content")

    digest = hashlib.sha256(content).hexdigest()
    return f"{HASH_PREFIX}{digest}"


def verify_hash(content: bytes, expected_hash: str) -> bool:
    """
    Verify that content matches an expected hash.

    Used for tamper detection when retrieving documents from storage.

    Args:
        content: Raw bytes of the document
        expected_hash: The hash to verify against (with 'sha256:' prefix)

    Returns:
        True if hash matches, False otherwise
    """
    if not expected_hash.startswith(HASH_PREFIX):
        raise ValueError(f"Invalid hash format, expected '{HASH_PREFIX}' prefix: {expected_hash}")

    return compute_document_hash(content) == expected_hash
