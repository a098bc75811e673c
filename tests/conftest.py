import os
import sys

import pytest

# Ensure repository src directory is on sys.path for tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from secret_ballot import elgamal  # noqa: E402
from secret_ballot.clock import ManualClock  # noqa: E402
from secret_ballot.contract import SecretBallot  # noqa: E402
from secret_ballot.models import DecryptionConfig, DecryptionMode, ProposalType, VotePermission  # noqa: E402
from secret_ballot.provider import ElGamalProvider  # noqa: E402

CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
CREATOR = "0x" + "c0" * 20
VOTER1 = "0x" + "a1" * 20
VOTER2 = "0x" + "a2" * 20
VOTER3 = "0x" + "a3" * 20
OUTSIDER = "0x" + "ee" * 20


@pytest.fixture(scope="session")
def keypair():
    return elgamal.elgamal_keygen()


@pytest.fixture
def clock():
    return ManualClock(1_700_000_000)


@pytest.fixture
def provider(keypair, clock):
    pub, priv = keypair
    return ElGamalProvider(pub, priv, max_tally=1000, clock=clock)


@pytest.fixture
def ballot(provider, clock):
    return SecretBallot(provider, CONTRACT, clock=clock)


@pytest.fixture
def make_proposal(ballot, clock):
    def _make(options=("A", "B"), duration=3600, mode=DecryptionMode.MANUAL, decrypters=(), delay=0, creator=CREATOR):
        start = clock()
        return ballot.create_proposal(
            creator,
            "Test Proposal",
            "Test description",
            ProposalType.SINGLE_CHOICE,
            list(options),
            start,
            start + duration,
            VotePermission.PUBLIC,
            DecryptionConfig.build(mode, decrypters, delay),
        )

    return _make


@pytest.fixture
def cast(ballot, provider):
    def _cast(proposal_id, voter, choice):
        options = ballot.get_proposal(proposal_id).options
        handle, proof = provider.encrypt(options.index(choice), ballot.address, voter, len(options))
        ballot.vote(voter, proposal_id, handle, proof)
        return handle

    return _cast
