"""Non-interactive zero-knowledge proofs for encrypted ballots.

A ballot is a one-hot vector of exponential-ElGamal bit ciphertexts. It is
well formed when every slot encrypts 0 or 1 and the component-wise product of
all slots encrypts exactly 1. Both facts are shown with disjunctive
Chaum-Pedersen proofs made non-interactive by Fiat-Shamir; the challenge hash
covers a context string so a proof cannot be replayed for another contract or
another voter.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Any, Dict, List, Sequence

from .elgamal import Ciphertext, ElGamalPublicKey, ciphertext_mul, neutral


def ballot_context(contract_address: str, caller_address: str, option_count: int) -> str:
    return f"{contract_address.lower()}|{caller_address.lower()}|{option_count}"


def H_int(*elements, modulus: int) -> int:
    h = hashlib.sha256()
    for e in elements:
        h.update(str(e).encode())
        h.update(b"|")
    return int.from_bytes(h.digest(), "big") % modulus


def in_subgroup(pub: ElGamalPublicKey, value: Any) -> bool:
    params = pub.params
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    if not 1 <= value < params.p:
        return False
    return pow(value, params.q, params.p) == 1


def _challenge(pub, context, ciphertext, commitments) -> int:
    params = pub.params
    flat = [params.p, params.g, pub.y, context, ciphertext[0], ciphertext[1]]
    for a1, a2 in commitments:
        flat.extend([a1, a2])
    return H_int(*flat, modulus=params.q)


def prove_disjunction(
    pub: ElGamalPublicKey,
    ciphertext: Ciphertext,
    plaintext: int,
    encryption_rand: int,
    choices: Sequence[int],
    context: str,
) -> Dict[str, Any]:
    """Prove that `ciphertext` encrypts one of `choices` without saying which.

    The real branch uses a fresh commitment; every other branch is simulated
    from a random (e, z) pair. The branch challenges must sum to the
    Fiat-Shamir challenge.
    """
    params = pub.params
    p, q, g, y = params.p, params.q, params.g, pub.y
    cipher1, cipher2 = ciphertext
    n = len(choices)
    commitments: List[List[int]] = []
    e_vals = [0] * n
    z_vals = [0] * n
    simulated_sum = 0
    real_index = None
    s_real = 0
    for i, m in enumerate(choices):
        if m == plaintext and real_index is None:
            s_real = secrets.randbelow(q - 1) + 1
            commitments.append([pow(g, s_real, p), pow(y, s_real, p)])
            real_index = i
            continue
        e_sim = secrets.randbelow(q - 1) + 1
        z_sim = secrets.randbelow(q - 1) + 1
        a1 = (pow(g, z_sim, p) * pow(cipher1, (-e_sim) % q, p)) % p
        numerator = (cipher2 * pow(pow(g, m, p), -1, p)) % p
        a2 = (pow(y, z_sim, p) * pow(numerator, (-e_sim) % q, p)) % p
        commitments.append([a1, a2])
        e_vals[i] = e_sim
        z_vals[i] = z_sim
        simulated_sum = (simulated_sum + e_sim) % q
    if real_index is None:
        raise ValueError("plaintext is not among the proven choices")

    e = _challenge(pub, context, ciphertext, commitments)
    e_real = (e - simulated_sum) % q
    e_vals[real_index] = e_real
    z_vals[real_index] = (s_real + e_real * encryption_rand) % q
    return {"commitments": commitments, "e_vals": e_vals, "z_vals": z_vals}


def verify_disjunction(
    pub: ElGamalPublicKey,
    ciphertext: Ciphertext,
    proof: Any,
    choices: Sequence[int],
    context: str,
) -> bool:
    if not isinstance(proof, dict):
        return False
    commitments = proof.get("commitments")
    e_vals = proof.get("e_vals")
    z_vals = proof.get("z_vals")
    n = len(choices)
    if not all(isinstance(v, list) and len(v) == n for v in (commitments, e_vals, z_vals)):
        return False
    params = pub.params
    p, q, g, y = params.p, params.q, params.g, pub.y
    cipher1, cipher2 = ciphertext
    for i, m in enumerate(choices):
        pair = commitments[i]
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            return False
        e_i, z_i = e_vals[i], z_vals[i]
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (e_i, z_i)):
            return False
        a1_check = (pow(g, z_i % q, p) * pow(cipher1, (-e_i) % q, p)) % p
        numerator = (cipher2 * pow(pow(g, m, p), -1, p)) % p
        a2_check = (pow(y, z_i % q, p) * pow(numerator, (-e_i) % q, p)) % p
        if [a1_check, a2_check] != [pair[0], pair[1]]:
            return False
    e = _challenge(pub, context, ciphertext, commitments)
    return sum(e_vals) % q == e


def prove_ballot(
    pub: ElGamalPublicKey,
    ciphertexts: Sequence[Ciphertext],
    rands: Sequence[int],
    choice: int,
    context: str,
) -> Dict[str, Any]:
    """Proof that a one-hot ballot selects exactly one option."""
    bits = [
        prove_disjunction(pub, ct, 1 if idx == choice else 0, r, [0, 1], context)
        for idx, (ct, r) in enumerate(zip(ciphertexts, rands))
    ]
    product = neutral()
    for ct in ciphertexts:
        product = ciphertext_mul(product, ct, pub.params.p)
    r_sum = sum(rands) % pub.params.q
    total = prove_disjunction(pub, product, 1, r_sum, [1], context)
    return {"bits": bits, "sum": total}


def verify_ballot(
    pub: ElGamalPublicKey,
    ciphertexts: Sequence[Ciphertext],
    proof: Any,
    context: str,
) -> bool:
    if not isinstance(proof, dict):
        return False
    bits = proof.get("bits")
    if not isinstance(bits, list) or len(bits) != len(ciphertexts):
        return False
    for ct in ciphertexts:
        if not (in_subgroup(pub, ct[0]) and in_subgroup(pub, ct[1])):
            return False
    for ct, bit_proof in zip(ciphertexts, bits):
        if not verify_disjunction(pub, ct, bit_proof, [0, 1], context):
            return False
    product = neutral()
    for ct in ciphertexts:
        product = ciphertext_mul(product, ct, pub.params.p)
    return verify_disjunction(pub, product, proof.get("sum"), [1], context)
