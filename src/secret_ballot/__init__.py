"""secret_ballot - encrypted proposal voting with two-phase decryption

Votes are folded into per-option ElGamal tallies without being decrypted;
after voting closes an authorized caller requests decryption, an off-chain
relayer decrypts the aggregate handles and the results are committed once
after checking they add up to the number of voters.
"""

from .contract import SecretBallot
from .errors import BallotError
from .models import DecryptionConfig, DecryptionMode, ProposalState, ProposalType, VotePermission
from .provider import ElGamalProvider

__all__ = [
    "SecretBallot",
    "BallotError",
    "DecryptionConfig",
    "DecryptionMode",
    "ProposalState",
    "ProposalType",
    "VotePermission",
    "ElGamalProvider",
]
