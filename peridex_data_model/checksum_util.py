import hashlib
import zlib
from typing import Dict, Union, List, Callable

# Type for checksum function: takes bytes -> hex string
ChecksumFunc = Callable[[bytes], str]

_FNV64_OFFSET_BASIS = 0xcbf29ce484222325
_FNV64_PRIME = 0x100000001b3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def fnv1a64(data: bytes) -> str:
    """64-bit FNV-1a of ``data`` as 16 lowercase hex characters."""
    h = _FNV64_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * _FNV64_PRIME) & _MASK64
    return format(h, '016x')


# Predefined checksum functions
_PREDEFINED_CHECKSUMS: Dict[str, ChecksumFunc] = {
    'fnv1a64': fnv1a64,
    'crc32': lambda b: format(zlib.crc32(b) & 0xFFFFFFFF, '08x'),
    'md5': lambda b: hashlib.md5(b).hexdigest(),
    'sha1': lambda b: hashlib.sha1(b).hexdigest(),
    'sha256': lambda b: hashlib.sha256(b).hexdigest(),
}


def get_checksum_func(
    algorithm: Union[str, ChecksumFunc]
) -> ChecksumFunc:
    """
    Resolve an algorithm name or accept a custom function.
    """
    if callable(algorithm):
        return algorithm
    alg = algorithm.lower()
    if alg in _PREDEFINED_CHECKSUMS:
        return _PREDEFINED_CHECKSUMS[alg]
    # fallback to hashlib
    if alg not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported checksum algorithm: {algorithm}")

    def _fn(b: bytes, name=alg):
        h = hashlib.new(name)
        h.update(b)
        return h.hexdigest()
    return _fn


def _to_bytes(value: Union[str, bytes, bytearray, memoryview, None]) -> bytes:
    """
    Normalize a str or bytes-like value into bytes; ``None`` becomes empty.
    """
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


def _concat_bytes(components: List[bytes]) -> bytes:
    """
    Concatenate multiple byte components deterministically.
    """
    return b"".join(components)
