import pytest

from secret_ballot.errors import (
    AlreadyDecrypted,
    IntegrityMismatch,
    NotDecrypted,
    NotEnded,
    Unauthorized,
)
from secret_ballot.events import DECRYPTION_FULFILLED, DECRYPTION_REQUESTED
from secret_ballot.models import DecryptionMode, ProposalState

from conftest import CREATOR, OUTSIDER, VOTER1, VOTER2, VOTER3


@pytest.fixture
def ended(make_proposal, cast, clock):
    """A two-option proposal with votes A, B, A whose voting window has closed."""
    pid = make_proposal(duration=100)
    cast(pid, VOTER1, "A")
    cast(pid, VOTER2, "B")
    cast(pid, VOTER3, "A")
    clock.advance(101)
    return pid


def test_full_decryption_flow(ballot, ended):
    assert ballot.get_state(ended) == ProposalState.ENDED
    assert ballot.request_decryption(CREATOR, ended) == 1
    assert ballot.fulfill_decryption(CREATOR, ended, [2, 1]) == [2, 1]
    assert ballot.get_results(ended) == [2, 1]
    assert ballot.get_state(ended) == ProposalState.DECRYPTED
    names = [e.name for e in ballot.events.since(0) if e.proposal_id == ended]
    assert names[-2:] == [DECRYPTION_REQUESTED, DECRYPTION_FULFILLED]


def test_request_while_active_is_rejected(ballot, make_proposal, cast):
    pid = make_proposal()
    cast(pid, VOTER1, "A")
    with pytest.raises(NotEnded) as exc:
        ballot.request_decryption(CREATOR, pid)
    assert exc.value.message == "Proposal still active"


def test_fulfill_while_active_is_rejected(ballot, make_proposal, cast):
    pid = make_proposal()
    cast(pid, VOTER1, "A")
    with pytest.raises(NotEnded):
        ballot.fulfill_decryption(CREATOR, pid, [1, 0])
    assert ballot.get_proposal(pid).decrypted is False


def test_results_before_decryption(ballot, ended):
    with pytest.raises(NotDecrypted):
        ballot.get_results(ended)


def test_manual_mode_restricts_callers(ballot, ended):
    with pytest.raises(Unauthorized):
        ballot.request_decryption(OUTSIDER, ended)
    with pytest.raises(Unauthorized):
        ballot.fulfill_decryption(OUTSIDER, ended, [2, 1])
    assert ballot.get_proposal(ended).decrypted is False


def test_authorized_decrypter_may_request(ballot, make_proposal, cast, clock):
    pid = make_proposal(duration=10, decrypters=(VOTER2,))
    cast(pid, VOTER1, "B")
    clock.advance(11)
    assert ballot.request_decryption(VOTER2, pid) == 1
    assert ballot.fulfill_decryption(VOTER2, pid, [0, 1]) == [0, 1]


def test_automatic_mode_allows_anyone(ballot, make_proposal, cast, clock):
    pid = make_proposal(duration=10, mode=DecryptionMode.AUTOMATIC)
    cast(pid, VOTER1, "A")
    clock.advance(11)
    # nothing happens on its own once voting closes
    assert ballot.get_state(pid) == ProposalState.ENDED
    assert ballot.request_decryption(OUTSIDER, pid) == 1
    assert ballot.fulfill_decryption(OUTSIDER, pid, [1, 0]) == [1, 0]


def test_decryption_delay(ballot, make_proposal, cast, clock):
    pid = make_proposal(duration=10, delay=300)
    cast(pid, VOTER1, "A")
    clock.advance(11)
    with pytest.raises(NotEnded) as exc:
        ballot.request_decryption(CREATOR, pid)
    assert exc.value.message == "Decryption delay not elapsed"
    clock.advance(299)
    assert ballot.request_decryption(CREATOR, pid) == 1


def test_mismatched_counts_are_rejected_then_corrected(ballot, ended):
    ballot.request_decryption(CREATOR, ended)
    with pytest.raises(IntegrityMismatch) as exc:
        ballot.fulfill_decryption(CREATOR, ended, [2, 2])
    assert exc.value.message == "Vote count mismatch"
    assert ballot.get_proposal(ended).decrypted is False
    assert ballot.fulfill_decryption(CREATOR, ended, [2, 1]) == [2, 1]


@pytest.mark.parametrize("counts", [[3], [1, 1, 1], None, [3, -0.5], [True, 2], "21"])
def test_malformed_counts_are_rejected(ballot, ended, counts):
    with pytest.raises(IntegrityMismatch):
        ballot.fulfill_decryption(CREATOR, ended, counts)
    assert ballot.get_proposal(ended).results is None


def test_decryption_is_terminal(ballot, ended):
    ballot.request_decryption(CREATOR, ended)
    ballot.fulfill_decryption(CREATOR, ended, [2, 1])
    with pytest.raises(AlreadyDecrypted):
        ballot.fulfill_decryption(CREATOR, ended, [1, 2])
    with pytest.raises(AlreadyDecrypted):
        ballot.request_decryption(CREATOR, ended)
    assert ballot.get_results(ended) == [2, 1]


def test_repeat_requests_are_counted(ballot, ended):
    assert ballot.request_decryption(CREATOR, ended) == 1
    assert ballot.request_decryption(CREATOR, ended) == 2
    assert ballot.orchestrator.request_count(ended) == 2
    requested = ballot.events.since(0, DECRYPTION_REQUESTED)
    assert [e.data["request_number"] for e in requested] == [1, 2]


def test_zero_vote_proposal_decrypts_to_zeros(ballot, make_proposal, clock):
    pid = make_proposal(options=("A", "B", "C"), duration=5)
    clock.advance(6)
    ballot.request_decryption(CREATOR, pid)
    assert ballot.fulfill_decryption(CREATOR, pid, [0, 0, 0]) == [0, 0, 0]


def test_request_grants_tally_access(ballot, provider, make_proposal, cast, clock):
    pid = make_proposal(duration=5, decrypters=(VOTER3,))
    cast(pid, VOTER1, "A")
    clock.advance(6)
    handles = ballot.get_proposal(pid).encrypted_tally
    assert not any(provider.is_allowed(h, CREATOR) for h in handles)
    ballot.request_decryption(CREATOR, pid)
    for h in handles:
        assert provider.is_allowed(h, CREATOR)
        assert provider.is_allowed(h, VOTER3)
        assert not provider.is_allowed(h, OUTSIDER)


def test_mixed_case_decrypter_from_raw_config(ballot, cast, clock):
    from secret_ballot.models import DecryptionConfig

    mixed = "0x" + "AB" * 20
    config = DecryptionConfig(DecryptionMode.MANUAL, frozenset({mixed}), 0)
    start = clock()
    pid = ballot.create_proposal(CREATOR, "T", "D", 0, ["A", "B"], start, start + 10, 0, config)
    cast(pid, VOTER1, "B")
    clock.advance(11)
    assert ballot.request_decryption(mixed, pid) == 1
    assert ballot.fulfill_decryption(mixed.lower(), pid, [0, 1]) == [0, 1]
