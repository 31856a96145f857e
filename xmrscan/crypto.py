"""
XMRSCAN Cryptographic Utilities
Keccak-256, Ed25519 arithmetic, CryptoNote key derivation and key images
"""

import hmac
import secrets
from typing import Tuple

from Crypto.Hash import keccak
from ecdsa.curves import Ed25519
from ecdsa.ellipticcurve import PointEdwards, INFINITY
from ecdsa.numbertheory import square_root_mod_prime, SquareRootError

from .errors import InvalidKeyEncoding, InvalidPoint


# ============================================================================
# CURVE PARAMETERS
# ============================================================================

CURVE = Ed25519.curve
G = Ed25519.generator

P = CURVE.p()                   # Field prime 2^255 - 19
L = Ed25519.order               # Prime subgroup order
D = CURVE.d()
COFACTOR = 8

KEY_SIZE = 32

# Encoding of the neutral element (x = 0, y = 1)
IDENTITY = b'\x01' + b'\x00' * 31

# Montgomery form constant used by the hash-to-point map
A = 486662
SQRT_M1 = pow(2, (P - 1) // 4, P)


def _fe_sqrt(value: int) -> int:
    return square_root_mod_prime(value % P, P)


FFFB1 = _fe_sqrt(-2 * A * (A + 2))
FFFB2 = _fe_sqrt(2 * A * (A + 2))
FFFB3 = _fe_sqrt(-SQRT_M1 * A * (A + 2))
FFFB4 = _fe_sqrt(SQRT_M1 * A * (A + 2))


# ============================================================================
# HASHING FUNCTIONS
# ============================================================================

def keccak256(data: bytes) -> bytes:
    """
    Keccak-256 with the original padding (cn_fast_hash).
    Not the same function as SHA3-256.
    """
    return keccak.new(digest_bits=256, data=data).digest()


def sc_reduce32(data: bytes) -> int:
    """Interpret 32 little-endian bytes as an integer modulo L."""
    return int.from_bytes(data, 'little') % L


def hash_to_scalar(data: bytes) -> int:
    """Hs: Keccak-256 reduced modulo the group order."""
    return sc_reduce32(keccak256(data))


def encode_varint(n: int) -> bytes:
    """Encode non-negative integer as a 7-bit little-endian varint."""
    if n < 0:
        raise ValueError("varint must be non-negative")

    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7f) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


# ============================================================================
# POINT ENCODING
# ============================================================================

def decode_point(data: bytes) -> PointEdwards:
    """
    Decode a compressed Ed25519 point.

    Args:
        data: 32-byte encoding (little-endian y, top bit = sign of x)

    Returns:
        Point on the curve

    Raises:
        InvalidPoint: If the bytes are not a canonical curve point
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != KEY_SIZE:
        raise InvalidPoint("Invalid point length")

    raw = int.from_bytes(data, 'little')
    sign = raw >> 255
    y = raw & ((1 << 255) - 1)

    if y >= P:
        raise InvalidPoint("Non-canonical point encoding")

    # x^2 = (y^2 - 1) / (d*y^2 + 1)
    y2 = y * y % P
    x2 = (y2 - 1) * pow(D * y2 + 1, P - 2, P) % P

    try:
        x = square_root_mod_prime(x2, P)
    except SquareRootError:
        raise InvalidPoint(f"Not a curve point: {bytes(data).hex()}")

    if x == 0 and sign:
        raise InvalidPoint("Invalid sign bit for x = 0")

    if x % 2 != sign:
        x = P - x

    return PointEdwards(CURVE, x, y, 1, x * y % P)


def encode_point(point) -> bytes:
    """Compress a point to its 32-byte encoding."""
    if point is INFINITY:
        return IDENTITY

    x = point.x()
    y = point.y()
    data = bytearray(y.to_bytes(KEY_SIZE, 'little'))
    if x & 1:
        data[-1] |= 0x80
    return bytes(data)


def is_valid_point(data: bytes) -> bool:
    """Check whether bytes decode to a curve point."""
    try:
        decode_point(data)
    except InvalidPoint:
        return False
    return True


def points_equal(a: bytes, b: bytes) -> bool:
    """Compare two point encodings without early exit."""
    return hmac.compare_digest(bytes(a), bytes(b))


def _point_add(a, b):
    if a is INFINITY:
        return b
    if b is INFINITY:
        return a
    return a + b


def _point_mul(point, scalar: int):
    if point is INFINITY or scalar == 0:
        return INFINITY
    return point * scalar


# ============================================================================
# SCALARS AND KEYS
# ============================================================================

def scalar_to_bytes(scalar: int) -> bytes:
    """Serialize a scalar as 32 little-endian bytes."""
    return scalar.to_bytes(KEY_SIZE, 'little')


def is_reduced_scalar(scalar: int) -> bool:
    """sc_check: scalar must lie in [0, L)."""
    return 0 <= scalar < L


def random_scalar() -> int:
    """Generate a uniformly random scalar."""
    return int.from_bytes(secrets.token_bytes(64), 'little') % L


def secret_key_to_public_key(secret: int) -> bytes:
    """
    Derive public key from secret scalar.

    Raises:
        InvalidKeyEncoding: If the scalar is not reduced
    """
    if not is_reduced_scalar(secret):
        raise InvalidKeyEncoding("Secret key is not reduced modulo the group order")
    return encode_point(_point_mul(G, secret))


def generate_keys() -> Tuple[int, bytes]:
    """
    Generate a new keypair.

    Returns:
        Tuple of (secret_scalar, public_key)
    """
    secret = random_scalar()
    return secret, secret_key_to_public_key(secret)


def parse_secret_key(key_str: str) -> int:
    """
    Parse a 64-character hex string into a secret scalar.

    Args:
        key_str: Hex encoding of the 32 key bytes

    Returns:
        Scalar value

    Raises:
        InvalidKeyEncoding: If the string is malformed or out of range
    """
    if not isinstance(key_str, str):
        raise InvalidKeyEncoding("Key must be a hex string")

    key_str = key_str.strip()
    if len(key_str) != 2 * KEY_SIZE:
        raise InvalidKeyEncoding(f"Key must be {2 * KEY_SIZE} hex characters, got {len(key_str)}")

    try:
        data = bytes.fromhex(key_str)
    except ValueError:
        raise InvalidKeyEncoding(f"Key is not valid hex: {key_str}")

    scalar = int.from_bytes(data, 'little')
    if not is_reduced_scalar(scalar):
        raise InvalidKeyEncoding(f"Key is not a reduced scalar: {key_str}")

    return scalar


def parse_public_key(key_str: str) -> bytes:
    """Parse a 64-character hex string into a validated point encoding."""
    if not isinstance(key_str, str) or len(key_str.strip()) != 2 * KEY_SIZE:
        raise InvalidPoint(f"Public key must be {2 * KEY_SIZE} hex characters")

    try:
        data = bytes.fromhex(key_str.strip())
    except ValueError:
        raise InvalidPoint(f"Public key is not valid hex: {key_str}")

    decode_point(data)
    return data


# ============================================================================
# HASH TO POINT
# ============================================================================

def _hash_to_ec(data: bytes):
    """
    Hp: map Keccak-256(data) onto the curve (ge_fromfe_frombytes_vartime)
    and clear the cofactor.
    """
    # All 256 bits of the hash are used, reduced modulo p.
    u = int.from_bytes(keccak256(data), 'little') % P

    v = 2 * u * u % P                               # 2 * u^2
    w = (v + 1) % P                                 # 2 * u^2 + 1
    x = (w * w - 2 * A * A * u * u) % P             # w^2 - 2 * A^2 * u^2

    # (w / x)^((p + 3) / 8)
    r_x = w * pow(x, 3, P) * pow(w * pow(x, 7, P), (P - 5) // 8, P) % P

    x = r_x * r_x * x % P
    z = -A % P
    negative = False

    if (w - x) % P != 0:
        if (w + x) % P != 0:
            negative = True
        else:
            r_x = r_x * FFFB1 % P
    else:
        r_x = r_x * FFFB2 % P

    if not negative:
        r_x = r_x * u % P                           # u * sqrt(2 * A * (A + 2) * w / x)
        z = z * v % P                               # -2 * A * u^2
        sign = 0
    else:
        x = x * SQRT_M1 % P
        if (w - x) % P != 0:
            r_x = r_x * FFFB3 % P
        else:
            r_x = r_x * FFFB4 % P
        sign = 1

    if (r_x & 1) != sign:
        r_x = -r_x % P

    r_z = (z + w) % P
    r_y = (z - w) % P
    r_x = r_x * r_z % P

    z_inv = pow(r_z, P - 2, P)
    px = r_x * z_inv % P
    py = r_y * z_inv % P

    point = PointEdwards(CURVE, px, py, 1, px * py % P)
    return _point_mul(point, COFACTOR)


def hash_to_point(data: bytes) -> bytes:
    """Hp as a point encoding."""
    return encode_point(_hash_to_ec(data))


# ============================================================================
# KEY DERIVATION
# ============================================================================

def generate_key_derivation(tx_public_key: bytes, private_view: int) -> bytes:
    """
    Compute the shared secret between a transaction and an account.

    derivation = 8 * private_view * tx_public_key

    Args:
        tx_public_key: Transaction public key R from the extra field
        private_view: Account's private view scalar

    Returns:
        32-byte derivation

    Raises:
        InvalidPoint: If tx_public_key is not a curve point
    """
    point = decode_point(tx_public_key)
    shared = _point_mul(point, private_view)
    return encode_point(_point_mul(shared, COFACTOR))


def derivation_to_scalar(derivation: bytes, output_index: int) -> int:
    """Hs(derivation || varint(output_index))."""
    return hash_to_scalar(bytes(derivation) + encode_varint(output_index))


def derive_public_key(derivation: bytes, output_index: int, public_spend: bytes) -> bytes:
    """
    One-time output key expected for the account at an output index.

    Returns:
        Hs(derivation || index) * G + public_spend
    """
    base = decode_point(public_spend)
    scalar = derivation_to_scalar(derivation, output_index)
    return encode_point(_point_add(_point_mul(G, scalar), base))


def derive_secret_key(derivation: bytes, output_index: int, private_spend: int) -> int:
    """One-time private key of an owned output."""
    return (derivation_to_scalar(derivation, output_index) + private_spend) % L


def generate_key_image(public_key: bytes, secret: int) -> bytes:
    """
    Key image of a one-time keypair.

    Args:
        public_key: One-time public key P = secret * G
        secret: One-time private scalar

    Returns:
        secret * Hp(P)
    """
    return encode_point(_point_mul(_hash_to_ec(public_key), secret))
