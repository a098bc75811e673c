"""Exponential ElGamal over the RFC 2409 Oakley group-1 prime.

Messages are encoded in the exponent (g^m), so multiplying two ciphertexts
component-wise adds their plaintexts. Decrypting an aggregate yields g^k and
the count k is recovered by a bounded discrete log.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from math import isqrt
from typing import Optional, Tuple

# RFC 2409 768-bit MODP Group 1 prime p (safe prime, p = 7 mod 8)
_P_HEX = (
    "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
    "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
    "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
    "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
    "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE65381"
    "FFFFFFFFFFFFFFFF"
)

Ciphertext = Tuple[int, int]


@dataclass(frozen=True)
class ElGamalParams:
    """ElGamal group params

    Attributes
    - p: safe prime modulus
    - q: large prime such that p = 2q + 1
    - g: generator of the subgroup of order q (here: g=2)
    """

    p: int
    q: int
    g: int


@dataclass(frozen=True)
class ElGamalPublicKey:
    params: ElGamalParams
    y: int

    def to_dict(self):
        return {"p": self.params.p, "q": self.params.q, "g": self.params.g, "y": self.y}

    @classmethod
    def from_dict(cls, data) -> "ElGamalPublicKey":
        params = ElGamalParams(p=int(data["p"]), q=int(data["q"]), g=int(data["g"]))
        return cls(params=params, y=int(data["y"]))


@dataclass(frozen=True)
class ElGamalPrivateKey:
    params: ElGamalParams
    x: int


def elgamal_params_default() -> ElGamalParams:
    p = int(_P_HEX, 16)
    q = (p - 1) // 2
    g = 2
    return ElGamalParams(p=p, q=q, g=g)


def rand_scalar(q: int) -> int:
    # sample uniformly in [1, q-1]
    return secrets.randbelow(q - 1) + 1


def elgamal_keygen(
    params: Optional[ElGamalParams] = None,
) -> Tuple[ElGamalPublicKey, ElGamalPrivateKey]:
    if params is None:
        params = elgamal_params_default()
    x = rand_scalar(params.q)
    y = pow(params.g, x, params.p)
    return ElGamalPublicKey(params=params, y=y), ElGamalPrivateKey(params=params, x=x)


def encrypt(pub: ElGamalPublicKey, m: int, r: Optional[int] = None) -> Ciphertext:
    """Encrypt a small non-negative integer in the exponent."""
    if m < 0:
        raise ValueError("plaintext must be non-negative")
    params = pub.params
    if r is None:
        r = rand_scalar(params.q)
    c1 = pow(params.g, r, params.p)
    c2 = (pow(pub.y, r, params.p) * pow(params.g, m, params.p)) % params.p
    return c1, c2


def neutral() -> Ciphertext:
    """The trivial encryption of zero (randomness 0)."""
    return 1, 1


def ciphertext_mul(a: Ciphertext, b: Ciphertext, p: int) -> Ciphertext:
    return (a[0] * b[0]) % p, (a[1] * b[1]) % p


def decrypt_to_element(priv: ElGamalPrivateKey, c: Ciphertext) -> int:
    c1, c2 = c
    params = priv.params
    s = pow(c1, priv.x, params.p)
    s_inv = pow(s, params.p - 2, params.p)
    return (c2 * s_inv) % params.p


def discrete_log_small(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    cur = 1
    if value == 1:
        return 0
    for k in range(1, max_k + 1):
        cur = (cur * base) % p
        if cur == value:
            return k
    return None


def discrete_log_bsgs(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    """Baby-step giant-step: find k <= max_k with base^k = value (mod p)."""
    if value == 1:
        return 0
    m = isqrt(max_k) + 1

    baby = {}
    cur = 1
    for j in range(m):
        if cur not in baby:
            baby[cur] = j
        cur = (cur * base) % p

    base_m_inv = pow(pow(base, m, p), p - 2, p)
    gamma = value
    for i in range(max_k // m + 2):
        if gamma in baby:
            k = i * m + baby[gamma]
            return k if k <= max_k else None
        gamma = (gamma * base_m_inv) % p
    return None


def discrete_log(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    """Choose an appropriate discrete-log routine based on max_k."""
    if max_k <= 64:
        return discrete_log_small(base, value, p, max_k)
    return discrete_log_bsgs(base, value, p, max_k)


def decrypt_count(priv: ElGamalPrivateKey, c: Ciphertext, max_k: int) -> Optional[int]:
    """Decrypt an aggregate ciphertext to an integer in [0, max_k], or None."""
    m_elem = decrypt_to_element(priv, c)
    return discrete_log(priv.params.g, m_elem, priv.params.p, max_k)
