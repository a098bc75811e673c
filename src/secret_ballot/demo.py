"""Scripted election that walks through the full proposal lifecycle.

Run with `python -m secret_ballot.demo`. A manual clock stands in for ledger
time so the run finishes instantly.
"""

import logging

from .authorization import Signer
from .clock import ManualClock
from .config import Settings
from .contract import SecretBallot
from .errors import BallotError
from .models import DecryptionConfig, DecryptionMode, ProposalType, VotePermission
from .provider import ElGamalProvider
from .relayer import DecryptionRelayer


def _print_heading(msg: str):
    print()
    print(msg)


def _print_kv(key: str, value):
    print(f"  {key}: {value}")


def main():
    settings = Settings.from_env()
    logging.basicConfig(format=settings.log_format, level=settings.log_level)

    clock = ManualClock()
    provider = ElGamalProvider(max_tally=settings.max_tally, clock=clock)
    ballot = SecretBallot(provider, settings.contract_address, clock=clock)
    oracle = Signer.generate()
    relayer = DecryptionRelayer(ballot, provider, oracle, duration_days=settings.auth_duration_days)

    creator = "0x" + "c0" * 20
    voters = {
        "0x" + "a1" * 20: "A",
        "0x" + "a2" * 20: "A",
        "0x" + "b1" * 20: "B",
    }

    _print_heading("[1] Create proposal")
    start = clock()
    proposal_id = ballot.create_proposal(
        creator,
        "Demo proposal",
        "Pick A or B",
        ProposalType.SINGLE_CHOICE,
        ["A", "B"],
        start,
        start + 3600,
        VotePermission.PUBLIC,
        DecryptionConfig.build(DecryptionMode.MANUAL, [oracle.address]),
    )
    _print_kv("id", proposal_id)
    _print_kv("state", ballot.get_state(proposal_id).name)
    _print_kv("oracle", oracle.address)

    _print_heading("[2] Cast encrypted ballots")
    options = ballot.get_proposal(proposal_id).options
    for voter, choice in voters.items():
        handle, proof = provider.encrypt(options.index(choice), ballot.address, voter, len(options))
        ballot.vote(voter, proposal_id, handle, proof)
        _print_kv(voter[:10] + "..", "ballot " + handle[:12] + "..")
    _print_kv("total voters", ballot.get_proposal(proposal_id).total_voters)

    _print_heading("[3] Request decryption while voting is open")
    try:
        ballot.request_decryption(creator, proposal_id)
    except BallotError as exc:
        _print_kv("rejected", f"{exc.code} ({exc.message})")

    _print_heading("[4] Close voting and request decryption")
    clock.advance(3601)
    _print_kv("state", ballot.get_state(proposal_id).name)
    _print_kv("request", ballot.request_decryption(creator, proposal_id))

    _print_heading("[5] Relayer decrypts and fulfils")
    outcome = relayer.process_pending()
    _print_kv("outcome", outcome)

    _print_heading("[6] Results")
    results = ballot.get_results(proposal_id)
    for name, count in zip(options, results):
        _print_kv(name, count)
    ok = sum(results) == ballot.get_proposal(proposal_id).total_voters
    _print_kv("sum matches voters", "OK" if ok else "MISMATCH")


if __name__ == "__main__":
    main()
