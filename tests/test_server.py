import pytest

pytest.importorskip("flask")

from secret_ballot import server  # noqa: E402
from secret_ballot.authorization import generate_keypair  # noqa: E402
from secret_ballot.clock import ManualClock  # noqa: E402
from secret_ballot.config import Settings  # noqa: E402
from secret_ballot.elgamal import ElGamalPublicKey  # noqa: E402
from secret_ballot.provider import ElGamalProvider, encrypt_choice  # noqa: E402
from secret_ballot.relayer import DecryptionRelayer  # noqa: E402

from conftest import CREATOR, OUTSIDER, VOTER1, VOTER2  # noqa: E402


@pytest.fixture
def app_env(keypair):
    clock = ManualClock(1_700_000_000)
    oracle_key, _ = generate_keypair()
    pub, priv = keypair
    provider = ElGamalProvider(pub, priv, max_tally=1000, clock=clock)
    ballot = server.configure(Settings(oracle_key=oracle_key), clock=clock, provider=provider)
    server.app.config["TESTING"] = True
    return server.app.test_client(), ballot, clock


def _oracle_address():
    relayer: DecryptionRelayer = server._STATE["relayer"]
    return relayer.address


def _create(client, **body):
    payload = {"title": "Lunch", "description": "Where to eat", "options": ["Pizza", "Tacos"], "duration": 60}
    payload.update(body)
    return client.post("/proposals", json=payload, headers={"X-Sender": CREATOR})


def _vote(client, pid, voter, choice):
    key = client.get("/public-key").get_json()
    pub = ElGamalPublicKey.from_dict(key["public_key"])
    handle, proof = encrypt_choice(pub, choice, 2, key["contract"], voter)
    return client.post(f"/proposals/{pid}/votes", json={"handle": handle, "proof": proof}, headers={"X-Sender": voter})


def test_health(app_env):
    client, ballot, _ = app_env
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "contract": ballot.address, "proposals": 0}


def test_create_and_read_proposal(app_env):
    client, _, _ = app_env
    resp = _create(client)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["id"] == 0
    assert body["proposal"]["state"] == "ACTIVE"
    assert body["proposal"]["end_time"] - body["proposal"]["start_time"] == 60

    detail = client.get("/proposals/0").get_json()
    assert detail["creator"] == CREATOR
    assert detail["results"] is None
    assert client.get(f"/users/{CREATOR}/proposals").get_json()["proposals"] == [0]
    assert len(client.get("/proposals").get_json()["proposals"]) == 1


def test_validation_error_is_json(app_env):
    client, _, _ = app_env
    resp = _create(client, options=["Same", "Same"])
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Duplicate option", "code": "INVALID_INPUT"}


def test_missing_sender_is_rejected(app_env):
    client, _, _ = app_env
    resp = client.post("/proposals", json={"title": "x"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "INVALID_INPUT"


def test_unknown_proposal_is_404(app_env):
    client, _, _ = app_env
    resp = client.get("/proposals/42")
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "NOT_FOUND"


def test_vote_and_double_vote(app_env):
    client, _, _ = app_env
    _create(client)
    assert _vote(client, 0, VOTER1, 1).status_code == 201
    assert client.get(f"/proposals/0/voters/{VOTER1}").get_json()["has_voted"] is True
    assert client.get(f"/users/{VOTER1}/votes").get_json()["proposals"] == [0]

    again = _vote(client, 0, VOTER1, 0)
    assert again.status_code == 409
    assert again.get_json()["code"] == "ALREADY_VOTED"


def test_tally_handle_route(app_env):
    client, _, _ = app_env
    _create(client)
    body = client.get("/proposals/0/tally/1").get_json()
    assert body["option_index"] == 1
    assert body["handle"].startswith("0x")
    assert client.get("/proposals/0/tally/5").status_code == 400


def test_full_flow_through_relayer(app_env):
    client, _, clock = app_env
    _create(client, decryption_config={"mode": "MANUAL", "authorized_decrypters": [_oracle_address()]})
    _vote(client, 0, VOTER1, 1)
    _vote(client, 0, VOTER2, 1)

    early = client.post("/proposals/0/decryption", headers={"X-Sender": CREATOR})
    assert early.status_code == 409
    assert early.get_json()["code"] == "NOT_ENDED"

    clock.advance(61)
    denied = client.post("/proposals/0/decryption", headers={"X-Sender": OUTSIDER})
    assert denied.status_code == 403

    requested = client.post("/proposals/0/decryption", headers={"X-Sender": CREATOR})
    assert requested.status_code == 202
    assert requested.get_json()["request_number"] == 1
    assert client.get("/proposals/0/results").status_code == 409

    run = client.post("/relayer/run").get_json()
    assert run["relayer"] == _oracle_address()
    assert run["outcome"] == {"0": [0, 2]}

    results = client.get("/proposals/0/results").get_json()
    assert results["results"] == [0, 2]
    assert results["by_option"] == {"Pizza": 0, "Tacos": 2}
    assert client.get("/proposals/0").get_json()["state"] == "DECRYPTED"

    names = [e["name"] for e in client.get("/events?since=0").get_json()["events"]]
    assert names == [
        "ProposalCreated",
        "VoteCast",
        "VoteCast",
        "DecryptionRequested",
        "DecryptionFulfilled",
    ]


def test_manual_fulfillment_route(app_env):
    client, _, clock = app_env
    _create(client)
    _vote(client, 0, VOTER1, 0)
    clock.advance(61)
    client.post("/proposals/0/decryption", headers={"X-Sender": CREATOR})

    bad = client.post("/proposals/0/fulfillment", json={"counts": [1, 1]}, headers={"X-Sender": CREATOR})
    assert bad.status_code == 400
    assert bad.get_json()["code"] == "INTEGRITY_MISMATCH"

    ok = client.post("/proposals/0/fulfillment", json={"counts": [1, 0]}, headers={"X-Sender": CREATOR})
    assert ok.status_code == 200
    assert ok.get_json()["results"] == [1, 0]

    again = client.post("/proposals/0/fulfillment", json={"counts": [1, 0]}, headers={"X-Sender": CREATOR})
    assert again.status_code == 409
    assert again.get_json()["code"] == "ALREADY_DECRYPTED"


@pytest.mark.parametrize("field", ["permission", "proposal_type"])
def test_boolean_enum_is_rejected_and_listing_survives(app_env, field):
    client, ballot, _ = app_env
    resp = _create(client, **{field: False})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "INVALID_INPUT"
    assert ballot.get_proposal_count() == 0

    assert _create(client).status_code == 201
    listing = client.get("/proposals")
    assert listing.status_code == 200
    assert [p["permission"] for p in listing.get_json()["proposals"]] == ["PUBLIC"]


def test_bad_decryption_delay_is_rejected(app_env):
    client, _, _ = app_env
    resp = _create(client, decryption_config={"delay_seconds": "5"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid decryption delay", "code": "INVALID_INPUT"}
