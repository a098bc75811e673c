import copy

import pytest

from secret_ballot.errors import AlreadyVoted, InvalidProof, NotFound
from secret_ballot.events import VOTE_CAST

from conftest import VOTER1, VOTER2, VOTER3


def test_vote_is_recorded_once(make_proposal, cast, ballot):
    pid = make_proposal()
    cast(pid, VOTER1, "A")
    proposal = ballot.get_proposal(pid)
    assert proposal.total_voters == 1
    assert ballot.has_voted(pid, VOTER1) is True
    assert ballot.has_voted(pid, VOTER2) is False
    assert ballot.get_user_voted_proposals(VOTER1) == [pid]


def test_second_vote_is_rejected_and_changes_nothing(make_proposal, cast, ballot):
    pid = make_proposal()
    cast(pid, VOTER1, "A")
    tally_before = ballot.get_proposal(pid).encrypted_tally
    with pytest.raises(AlreadyVoted):
        cast(pid, VOTER1, "B")
    proposal = ballot.get_proposal(pid)
    assert proposal.total_voters == 1
    assert proposal.encrypted_tally == tally_before
    assert ballot.get_user_voted_proposals(VOTER1) == [pid]


def test_every_option_handle_changes_on_vote(make_proposal, cast, ballot):
    pid = make_proposal(options=("A", "B", "C"))
    before = ballot.get_proposal(pid).encrypted_tally
    cast(pid, VOTER1, "C")
    after = ballot.get_proposal(pid).encrypted_tally
    assert all(b != a for b, a in zip(before, after))


def test_proof_for_another_voter_is_rejected(make_proposal, ballot, provider):
    pid = make_proposal()
    handle, proof = provider.encrypt(0, ballot.address, VOTER1, 2)
    with pytest.raises(InvalidProof):
        ballot.vote(VOTER2, pid, handle, proof)
    assert ballot.has_voted(pid, VOTER2) is False
    assert ballot.get_proposal(pid).total_voters == 0


def test_ballot_width_must_match_options(make_proposal, ballot, provider):
    pid = make_proposal(options=("A", "B"))
    handle, proof = provider.encrypt(0, ballot.address, VOTER1, 3)
    with pytest.raises(InvalidProof):
        ballot.vote(VOTER1, pid, handle, proof)


def test_tampered_ciphertext_is_rejected(make_proposal, ballot, provider):
    pid = make_proposal()
    handle, proof = provider.encrypt(1, ballot.address, VOTER1, 2)
    forged = copy.deepcopy(proof)
    forged["ciphertexts"][0], forged["ciphertexts"][1] = forged["ciphertexts"][1], forged["ciphertexts"][0]
    with pytest.raises(InvalidProof):
        ballot.vote(VOTER1, pid, handle, forged)


@pytest.mark.parametrize("proof", [None, {}, {"ciphertexts": "x"}, {"ciphertexts": [[1, 2]], "ballot": {}}])
def test_malformed_proof_is_rejected(make_proposal, ballot, provider, proof):
    pid = make_proposal()
    handle, _ = provider.encrypt(0, ballot.address, VOTER1, 2)
    with pytest.raises(InvalidProof):
        ballot.vote(VOTER1, pid, handle, proof)


def test_vote_on_unknown_proposal(ballot, provider):
    handle, proof = provider.encrypt(0, ballot.address, VOTER1, 2)
    with pytest.raises(NotFound):
        ballot.vote(VOTER1, 7, handle, proof)


def test_vote_cast_event_names_voter_only(make_proposal, cast, ballot):
    pid = make_proposal()
    cast(pid, VOTER1, "B")
    (event,) = ballot.events.since(0, VOTE_CAST)
    assert event.proposal_id == pid
    assert event.data == {"voter": VOTER1}


def test_tally_decrypts_to_votes_cast(make_proposal, cast, ballot, provider, keypair):
    from secret_ballot import elgamal

    _, priv = keypair
    pid = make_proposal(options=("A", "B", "C"))
    for voter, choice in ((VOTER1, "A"), (VOTER2, "C"), (VOTER3, "A")):
        cast(pid, voter, choice)
    counts = [
        elgamal.decrypt_count(priv, provider._values[h], max_k=10)
        for h in ballot.get_proposal(pid).encrypted_tally
    ]
    assert counts == [2, 0, 1]
    assert sum(counts) == ballot.get_proposal(pid).total_voters
