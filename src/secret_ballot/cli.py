"""Small CLI for interacting with a running SecretBallot server.

Usage examples:
    secret-ballot --sender 0xabc... create --title T --description D --options "Yes,No"
    secret-ballot list
    secret-ballot --sender 0xabc... vote --id 0 --choice Yes
    secret-ballot --sender 0xabc... request-decryption --id 0
    secret-ballot relay
    secret-ballot results --id 0
"""

import argparse
import json
import logging
import os
import sys

import requests

from .config import Settings, client_base_url
from .elgamal import ElGamalPublicKey
from .provider import encrypt_choice

TIMEOUT = 10


class ApiError(Exception):
    def __init__(self, status: int, payload):
        super().__init__(f"{status}: {payload}")
        self.status = status
        self.payload = payload


def _call(method: str, path: str, sender=None, payload=None):
    headers = {"X-Sender": sender} if sender else {}
    r = requests.request(method, f"{client_base_url()}{path}", json=payload, headers=headers, timeout=TIMEOUT)
    try:
        body = r.json()
    except ValueError:
        body = {"error": r.text}
    if r.status_code >= 400:
        raise ApiError(r.status_code, body)
    return body


def _print(data):
    print(json.dumps(data, indent=2, sort_keys=True))


def _resolve_choice(options, choice: str) -> int:
    if choice in options:
        return options.index(choice)
    try:
        idx = int(choice)
    except ValueError:
        raise SystemExit(f"unknown option {choice!r}; expected one of {options}") from None
    if not 0 <= idx < len(options):
        raise SystemExit(f"option index {idx} out of range")
    return idx


def create(args):
    options = [opt.strip() for opt in args.options.split(",") if opt.strip()]
    payload = {
        "title": args.title,
        "description": args.description,
        "options": options,
        "duration": args.duration,
        "decryption_config": {
            "mode": args.mode,
            "authorized_decrypters": args.decrypter or [],
            "delay_seconds": args.delay,
        },
    }
    if args.start is not None:
        payload["start_time"] = args.start
    _print(_call("POST", "/proposals", args.sender, payload))


def list_proposals(args):
    for p in _call("GET", "/proposals")["proposals"]:
        print(f"[{p['id']}] {p['title']} ({p['state']}) voters={p['total_voters']} options={', '.join(p['options'])}")


def show(args):
    _print(_call("GET", f"/proposals/{args.id}"))


def vote(args):
    if not args.sender:
        raise SystemExit("--sender is required to vote")
    key_info = _call("GET", "/public-key")
    proposal = _call("GET", f"/proposals/{args.id}")
    options = proposal["options"]
    choice = _resolve_choice(options, args.choice)
    pub = ElGamalPublicKey.from_dict(key_info["public_key"])
    handle, proof = encrypt_choice(pub, choice, len(options), key_info["contract"], args.sender)
    _print(_call("POST", f"/proposals/{args.id}/votes", args.sender, {"handle": handle, "proof": proof}))


def has_voted(args):
    _print(_call("GET", f"/proposals/{args.id}/voters/{args.address}"))


def request_decryption(args):
    _print(_call("POST", f"/proposals/{args.id}/decryption", args.sender, {}))


def relay(args):
    _print(_call("POST", "/relayer/run", args.sender, {}))


def results(args):
    data = _call("GET", f"/proposals/{args.id}/results")
    for option, count in data["by_option"].items():
        print(f"{option}: {count} votes")


def created(args):
    _print(_call("GET", f"/users/{args.address}/proposals"))


def voted(args):
    _print(_call("GET", f"/users/{args.address}/votes"))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="secret-ballot")
    p.add_argument("--sender", default=os.getenv("SECRET_BALLOT_SENDER"), help="caller address (X-Sender)")
    sub = p.add_subparsers(dest="cmd")

    c = sub.add_parser("create")
    c.add_argument("--title", required=True)
    c.add_argument("--description", required=True)
    c.add_argument("--options", required=True, help="comma-separated option labels")
    c.add_argument("--duration", type=int, default=604800, help="seconds (default 7 days)")
    c.add_argument("--start", type=int, default=None, help="unix start time (default now)")
    c.add_argument("--mode", choices=["MANUAL", "AUTOMATIC"], default="MANUAL")
    c.add_argument("--decrypter", action="append", help="authorized decrypter address (repeatable)")
    c.add_argument("--delay", type=int, default=0, help="seconds after end before decryption")
    c.set_defaults(func=create)

    sub.add_parser("list").set_defaults(func=list_proposals)

    for name, func in (("show", show), ("request-decryption", request_decryption), ("results", results)):
        s = sub.add_parser(name)
        s.add_argument("--id", type=int, required=True)
        s.set_defaults(func=func)

    v = sub.add_parser("vote")
    v.add_argument("--id", type=int, required=True)
    v.add_argument("--choice", required=True, help="option label or index")
    v.set_defaults(func=vote)

    h = sub.add_parser("has-voted")
    h.add_argument("--id", type=int, required=True)
    h.add_argument("--address", required=True)
    h.set_defaults(func=has_voted)

    sub.add_parser("relay").set_defaults(func=relay)

    for name, func in (("created", created), ("voted", voted)):
        s = sub.add_parser(name)
        s.add_argument("--address", required=True)
        s.set_defaults(func=func)
    return p


def main(argv=None):
    settings = Settings.from_env()
    logging.basicConfig(format=settings.log_format, level=settings.log_level)
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    try:
        args.func(args)
    except ApiError as exc:
        print(f"error: {exc.payload.get('error', exc.payload)}", file=sys.stderr)
        return 2
    except requests.RequestException as exc:
        print(f"error: cannot reach {client_base_url()}: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
