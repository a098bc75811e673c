"""Flask API over one SecretBallot deployment.

Endpoints:
- GET  /health                               -> liveness and proposal count
- GET  /public-key                           -> provider key for client-side encryption
- POST /proposals                            -> create a proposal
- GET  /proposals                            -> list every proposal
- GET  /proposals/<id>                       -> proposal detail with derived state
- POST /proposals/<id>/votes                 -> cast {"handle": ..., "proof": ...}
- GET  /proposals/<id>/voters/<address>      -> has <address> voted
- GET  /proposals/<id>/tally/<index>         -> encrypted count handle for an option
- POST /proposals/<id>/decryption            -> phase 1, request decryption
- POST /proposals/<id>/fulfillment           -> phase 2, submit {"counts": [...]}
- GET  /proposals/<id>/results               -> decrypted results
- GET  /users/<address>/proposals            -> ids created by <address>
- GET  /users/<address>/votes                -> ids voted on by <address>
- GET  /events?since=N                       -> event log from cursor N
- POST /relayer/run                          -> let the server's oracle process pending requests

Writes identify the caller with the X-Sender header.
"""

import logging
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request

from .authorization import Signer
from .config import Settings
from .contract import SecretBallot
from .errors import BallotError, InvalidInput
from .models import DecryptionConfig, normalize_address
from .provider import ElGamalProvider
from .relayer import DecryptionRelayer

logger = logging.getLogger(__name__)

app = Flask(__name__)

_STATE: Dict[str, Any] = {
    "settings": None,
    "provider": None,
    "ballot": None,
    "relayer": None,
}


def configure(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], int]] = None,
    provider: Optional[ElGamalProvider] = None,
) -> SecretBallot:
    """(Re)build the deployment served by the app and return it."""
    settings = settings or Settings.from_env()
    if provider is None:
        provider = ElGamalProvider(max_tally=settings.max_tally, clock=clock)
    ballot = SecretBallot(provider, settings.contract_address, clock=clock)
    signer = Signer.from_b64(settings.oracle_key) if settings.oracle_key else Signer.generate()
    relayer = DecryptionRelayer(ballot, provider, signer, duration_days=settings.auth_duration_days)
    _STATE.update(settings=settings, provider=provider, ballot=ballot, relayer=relayer)
    logger.info("serving contract %s, oracle address %s", ballot.address, signer.address)
    return ballot


def _ballot() -> SecretBallot:
    if _STATE["ballot"] is None:
        configure()
    return _STATE["ballot"]


def _sender() -> str:
    return normalize_address(request.headers.get("X-Sender", ""))


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("request body must be a JSON object")
    return data


def _proposal_json(ballot: SecretBallot, proposal_id: int) -> Dict[str, Any]:
    out = ballot.get_proposal(proposal_id).to_dict()
    out["state"] = ballot.get_state(proposal_id).name
    return out


@app.errorhandler(BallotError)
def handle_ballot_error(exc: BallotError):
    return jsonify(exc.to_dict()), exc.http_status


@app.route("/health", methods=["GET"])
def health():
    ballot = _ballot()
    return jsonify({"status": "ok", "contract": ballot.address, "proposals": ballot.get_proposal_count()})


@app.route("/public-key", methods=["GET"])
def public_key():
    ballot = _ballot()
    return jsonify({"contract": ballot.address, "public_key": _STATE["provider"].public_key.to_dict()})


@app.route("/proposals", methods=["POST"])
def create_proposal():
    ballot = _ballot()
    sender = _sender()
    data = _body()
    start_time = data.get("start_time", ballot.now())
    end_time = data.get("end_time")
    if end_time is None and isinstance(data.get("duration"), int) and isinstance(start_time, int):
        end_time = start_time + data["duration"]
    proposal_id = ballot.create_proposal(
        sender,
        data.get("title"),
        data.get("description"),
        data.get("proposal_type", "SINGLE_CHOICE"),
        data.get("options"),
        start_time,
        end_time,
        data.get("permission", "PUBLIC"),
        DecryptionConfig.from_dict(data.get("decryption_config")),
    )
    return jsonify({"id": proposal_id, "proposal": _proposal_json(ballot, proposal_id)}), 201


@app.route("/proposals", methods=["GET"])
def list_proposals():
    ballot = _ballot()
    return jsonify({"proposals": [_proposal_json(ballot, p.id) for p in ballot.get_all_proposals()]})


@app.route("/proposals/<int:proposal_id>", methods=["GET"])
def get_proposal(proposal_id: int):
    return jsonify(_proposal_json(_ballot(), proposal_id))


@app.route("/proposals/<int:proposal_id>/votes", methods=["POST"])
def cast_vote(proposal_id: int):
    ballot = _ballot()
    sender = _sender()
    data = _body()
    handle = data.get("handle")
    if not isinstance(handle, str):
        raise InvalidInput("missing ballot handle")
    ballot.vote(sender, proposal_id, handle, data.get("proof"))
    return jsonify({"status": "voted", "id": proposal_id, "voter": sender}), 201


@app.route("/proposals/<int:proposal_id>/voters/<address>", methods=["GET"])
def has_voted(proposal_id: int, address: str):
    voted = _ballot().has_voted(proposal_id, address)
    return jsonify({"id": proposal_id, "address": address.lower(), "has_voted": voted})


@app.route("/proposals/<int:proposal_id>/tally/<int:option_index>", methods=["GET"])
def encrypted_vote_count(proposal_id: int, option_index: int):
    handle = _ballot().get_encrypted_vote_count(proposal_id, option_index)
    return jsonify({"id": proposal_id, "option_index": option_index, "handle": handle})


@app.route("/proposals/<int:proposal_id>/decryption", methods=["POST"])
def request_decryption(proposal_id: int):
    round_no = _ballot().request_decryption(_sender(), proposal_id)
    return jsonify({"status": "requested", "id": proposal_id, "request_number": round_no}), 202


@app.route("/proposals/<int:proposal_id>/fulfillment", methods=["POST"])
def fulfill_decryption(proposal_id: int):
    ballot = _ballot()
    sender = _sender()
    results = ballot.fulfill_decryption(sender, proposal_id, _body().get("counts"))
    return jsonify({"status": "decrypted", "id": proposal_id, "results": results})


@app.route("/proposals/<int:proposal_id>/results", methods=["GET"])
def get_results(proposal_id: int):
    ballot = _ballot()
    results = ballot.get_results(proposal_id)
    options = ballot.get_proposal(proposal_id).options
    return jsonify({"id": proposal_id, "results": results, "by_option": dict(zip(options, results))})


@app.route("/users/<address>/proposals", methods=["GET"])
def user_created(address: str):
    return jsonify({"address": address.lower(), "proposals": _ballot().get_user_created_proposals(address)})


@app.route("/users/<address>/votes", methods=["GET"])
def user_voted(address: str):
    return jsonify({"address": address.lower(), "proposals": _ballot().get_user_voted_proposals(address)})


@app.route("/events", methods=["GET"])
def list_events():
    since = request.args.get("since", default=0, type=int)
    events = _ballot().events.since(since)
    return jsonify({"events": [e.to_dict() for e in events]})


@app.route("/relayer/run", methods=["POST"])
def run_relayer():
    _ballot()
    relayer: DecryptionRelayer = _STATE["relayer"]
    outcome = relayer.process_pending()
    return jsonify({"relayer": relayer.address, "outcome": {str(k): v for k, v in outcome.items()}})


def main():
    settings = Settings.from_env()
    logging.basicConfig(format=settings.log_format, level=settings.log_level)
    configure(settings)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
