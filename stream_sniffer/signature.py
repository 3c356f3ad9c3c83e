"""Gzip magic-number detection."""

# ID1, ID2 and CM (deflate) from the gzip member header (RFC 1952)
GZIP_MAGIC = b"\x1f\x8b\x08"
MIN_SIGNATURE_LENGTH = len(GZIP_MAGIC)


def looks_like_gzip(data) -> bool:
    """Return True if *data* starts with the gzip signature.

    Only the fixed-position header bytes are inspected; the rest of the
    payload is not validated.
    """
    if not data or len(data) < MIN_SIGNATURE_LENGTH:
        return False
    return bytes(data[:MIN_SIGNATURE_LENGTH]) == GZIP_MAGIC
