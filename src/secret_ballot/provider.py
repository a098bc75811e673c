"""Encryption provider capability and its ElGamal reference implementation.

The ballot core only ever sees opaque handles. It asks the provider for an
encrypted zero per option, for a homomorphic add of one selected ballot slot
into a tally handle, and (through the relayer) for a batch decryption gated by
a signed authorization and per-handle access lists.
"""

from __future__ import annotations

import hashlib
import itertools
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import elgamal, proofs
from .authorization import verify_authorization
from .clock import system_clock
from .elgamal import Ciphertext, ElGamalPrivateKey, ElGamalPublicKey
from .errors import AuthorizationError, IntegrityMismatch, InvalidInput

logger = logging.getLogger(__name__)


class EncryptionProvider:
    """Interface the ballot core consumes. Handles are opaque strings."""

    def encrypt(
        self, value: int, contract_address: str, caller_address: str, option_count: int
    ) -> Tuple[str, Dict[str, Any]]:
        raise NotImplementedError

    def encrypted_zero(self, contract_address: str) -> str:
        raise NotImplementedError

    def homomorphic_add(self, handle: str, encrypted_unit: str, selector: int) -> str:
        raise NotImplementedError

    def verify_proof(
        self,
        handle: str,
        proof: Any,
        contract_address: str,
        caller_address: str,
        option_count: Optional[int] = None,
    ) -> bool:
        raise NotImplementedError

    def allow(self, handle: str, address: str) -> None:
        raise NotImplementedError

    def decrypt_batch(self, handles: Iterable[str], authorization: Dict[str, Any]) -> Dict[str, int]:
        raise NotImplementedError


def _digest_handle(*parts: Any) -> str:
    h = hashlib.sha256()
    for part in parts:
        h.update(str(part).encode())
        h.update(b"|")
    return "0x" + h.hexdigest()


def ballot_handle(ciphertexts: Sequence[Ciphertext], context: str) -> str:
    flat = [context]
    for c1, c2 in ciphertexts:
        flat.extend([c1, c2])
    return _digest_handle("ballot", *flat)


def encrypt_choice(
    pub: ElGamalPublicKey,
    choice: int,
    option_count: int,
    contract_address: str,
    caller_address: str,
) -> Tuple[str, Dict[str, Any]]:
    """Client-side encryption of a single-choice ballot.

    Needs only the public key. Returns the ballot handle and an input proof
    carrying the one-hot ciphertexts plus their validity proof.
    """
    if isinstance(choice, bool) or not isinstance(choice, int) or not 0 <= choice < option_count:
        raise InvalidInput("Invalid option index")
    context = proofs.ballot_context(contract_address, caller_address, option_count)
    ciphertexts: List[Ciphertext] = []
    rands: List[int] = []
    for idx in range(option_count):
        r = elgamal.rand_scalar(pub.params.q)
        ciphertexts.append(elgamal.encrypt(pub, 1 if idx == choice else 0, r))
        rands.append(r)
    ballot_proof = proofs.prove_ballot(pub, ciphertexts, rands, choice, context)
    proof = {
        "ciphertexts": [[c1, c2] for c1, c2 in ciphertexts],
        "ballot": ballot_proof,
    }
    return ballot_handle(ciphertexts, context), proof


def _parse_ciphertexts(raw: Any) -> Optional[List[Ciphertext]]:
    if not isinstance(raw, list) or not raw:
        return None
    out: List[Ciphertext] = []
    for item in raw:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            return None
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in item):
            return None
        out.append((item[0], item[1]))
    return out


class ElGamalProvider(EncryptionProvider):
    """In-process provider holding the decryption key and the handle table."""

    def __init__(
        self,
        public_key: Optional[ElGamalPublicKey] = None,
        private_key: Optional[ElGamalPrivateKey] = None,
        max_tally: int = 1 << 20,
        clock: Optional[Callable[[], int]] = None,
    ):
        if (public_key is None) != (private_key is None):
            raise ValueError("public_key and private_key must be given together")
        if public_key is None:
            public_key, private_key = elgamal.elgamal_keygen()
        self.public_key = public_key
        self._private_key = private_key
        self.max_tally = max_tally
        self._clock = clock or system_clock
        self._lock = threading.RLock()
        self._values: Dict[str, Ciphertext] = {}
        self._ballots: Dict[str, List[Ciphertext]] = {}
        self._owner: Dict[str, str] = {}
        self._acl: Dict[str, set] = {}
        self._seq = itertools.count()

    def _register(self, ciphertext: Ciphertext, contract_address: str) -> str:
        handle = _digest_handle("value", next(self._seq), ciphertext[0], ciphertext[1])
        self._values[handle] = ciphertext
        self._owner[handle] = contract_address.lower()
        self._acl[handle] = set()
        return handle

    def encrypt(self, value, contract_address, caller_address, option_count):
        return encrypt_choice(self.public_key, value, option_count, contract_address, caller_address)

    def encrypted_zero(self, contract_address: str) -> str:
        with self._lock:
            return self._register(elgamal.encrypt(self.public_key, 0), contract_address)

    def verify_proof(self, handle, proof, contract_address, caller_address, option_count=None) -> bool:
        if not isinstance(proof, dict) or not isinstance(handle, str):
            return False
        ciphertexts = _parse_ciphertexts(proof.get("ciphertexts"))
        if ciphertexts is None:
            return False
        if option_count is not None and len(ciphertexts) != option_count:
            logger.debug("ballot width %d does not match %d options", len(ciphertexts), option_count)
            return False
        context = proofs.ballot_context(contract_address, caller_address, len(ciphertexts))
        if ballot_handle(ciphertexts, context) != handle:
            return False
        if not proofs.verify_ballot(self.public_key, ciphertexts, proof.get("ballot"), context):
            return False
        with self._lock:
            self._ballots[handle] = ciphertexts
            self._owner[handle] = contract_address.lower()
        return True

    def homomorphic_add(self, handle: str, encrypted_unit: str, selector: int) -> str:
        """Add slot `selector` of ballot `encrypted_unit` into tally `handle`.

        The slot encrypts 0 or 1; the caller performs the same add for every
        option so nothing about the choice is revealed by which slots change.
        """
        with self._lock:
            current = self._values.get(handle)
            ballot = self._ballots.get(encrypted_unit)
            if current is None or ballot is None:
                raise InvalidInput("Unknown ciphertext handle")
            if not 0 <= selector < len(ballot):
                raise InvalidInput("Invalid option index")
            combined = elgamal.ciphertext_mul(current, ballot[selector], self.public_key.params.p)
            return self._register(combined, self._owner[handle])

    def allow(self, handle: str, address: str) -> None:
        with self._lock:
            if handle not in self._values:
                raise InvalidInput("Unknown ciphertext handle")
            self._acl[handle].add(address.lower())

    def is_allowed(self, handle: str, address: str) -> bool:
        with self._lock:
            return address.lower() in self._acl.get(handle, ())

    def decrypt_batch(self, handles, authorization) -> Dict[str, int]:
        handles = list(handles)
        now = self._clock()
        out: Dict[str, int] = {}
        with self._lock:
            for handle in handles:
                ciphertext = self._values.get(handle)
                if ciphertext is None:
                    raise InvalidInput("Unknown ciphertext handle")
                signer = verify_authorization(authorization, now, self._owner[handle])
                if signer not in self._acl[handle]:
                    logger.warning("decrypt denied: %s not allowed on %s", signer, handle[:10])
                    raise AuthorizationError("Signer not allowed to decrypt handle")
                out[handle] = ciphertext
        plaintexts: Dict[str, int] = {}
        for handle, ciphertext in out.items():
            count = elgamal.decrypt_count(self._private_key, ciphertext, self.max_tally)
            if count is None:
                raise IntegrityMismatch("Decrypted value out of range")
            plaintexts[handle] = count
        logger.info("decrypted batch of %d handles", len(plaintexts))
        return plaintexts
