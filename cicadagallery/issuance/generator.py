#!/usr/bin/env python3
"""
CicadaGallery license key generator.

Developer tool for the issuance side: creates the signing key pair, issues
license keys by hand and runs the reference issuance service.

Usage:
    cicadagallery-license-generator keygen --out signing_key.pem
    cicadagallery-license-generator issue --key signing_key.pem \\
        --order-id 1234 --email buyer@example.com
    cicadagallery-license-generator issue --key signing_key.pem \\
        --batch 10 --prefix BOOTH --email sales@example.com --file keys.txt
    cicadagallery-license-generator serve --key signing_key.pem --orders orders.yaml
"""

import argparse
import os
import sys
import time

import uvicorn
import yaml

from cicadagallery.config.config import get_issuance_config
from cicadagallery.issuance.service import InMemoryOrderBook, create_app
from cicadagallery.issuance.signer import (
    LicenseSigner,
    generate_signing_key,
    load_signing_key,
    public_key_hex,
    signing_key_to_pem,
)
from cicadagallery.licensing.codec import format_timestamp

MAX_BATCH = 100
SECONDS_PER_DAY = 24 * 60 * 60


def _load_signer(key_source):
    source = key_source or get_issuance_config().get("signing_key_file")
    if not source:
        raise SystemExit("No signing key given (--key or issuance.signing_key_file)")
    try:
        return LicenseSigner(load_signing_key(source))
    except (OSError, ValueError) as e:
        raise SystemExit(f"Failed to load signing key: {e}") from e


def cmd_keygen(args) -> int:
    """Create a signing key and print the verification key to embed."""
    signing_key = generate_signing_key()
    pem = signing_key_to_pem(signing_key)
    if args.out:
        fd = os.open(args.out, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as key_file:
            key_file.write(pem)
        print(f"Signing key written to {args.out} - keep it secret", file=sys.stderr)
    else:
        print(pem, end="")
    print(f"VERIFYING_KEY_HEX = \"{public_key_hex(signing_key)}\"", file=sys.stderr)
    return 0


def cmd_issue(args) -> int:
    """Issue one license, or a batch of them."""
    signer = _load_signer(args.key)
    expires_at = None
    if args.days is not None:
        expires_at = int(time.time()) + args.days * SECONDS_PER_DAY

    if args.batch is not None:
        count = min(max(args.batch, 1), MAX_BATCH)
        order_ids = [f"{args.prefix}-{i:04d}" for i in range(1, count + 1)]
    elif args.order_id:
        order_ids = [args.order_id]
    else:
        print("Either --order-id or --batch is required", file=sys.stderr)
        return 2

    keys = [signer.issue(order_id, args.email, expires_at) for order_id in order_ids]

    if args.file:
        with open(args.file, "w", encoding="utf-8") as out:
            out.writelines(f"{key}\n" for key in keys)
        print(f"{len(keys)} license key(s) written to {args.file}", file=sys.stderr)
    else:
        for key in keys:
            print(key)

    print(
        f"Issued to: {args.email}, expires: {format_timestamp(expires_at)}",
        file=sys.stderr,
    )
    return 0


def cmd_serve(args) -> int:
    """Run the reference issuance service."""
    signer = _load_signer(args.key)
    orders = {}
    if args.orders:
        with open(args.orders, "r", encoding="utf-8") as orders_file:
            orders = yaml.safe_load(orders_file) or {}
        if not isinstance(orders, dict):
            print("Orders file must map order ids to e-mail addresses", file=sys.stderr)
            return 2

    issuance_config = get_issuance_config()
    app = create_app(signer, InMemoryOrderBook(orders))
    uvicorn.run(
        app,
        host=args.host or issuance_config["host"],
        port=args.port or issuance_config["port"],
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cicadagallery-license-generator",
        description="CicadaGallery license key generator",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    keygen = subparsers.add_parser("keygen", help="create a signing key pair")
    keygen.add_argument("--out", help="write the private key PEM to this file")
    keygen.set_defaults(func=cmd_keygen)

    issue = subparsers.add_parser("issue", help="issue license keys")
    issue.add_argument("--key", help="signing key file, PEM or hex")
    issue.add_argument("--email", required=True, help="purchaser e-mail address")
    issue.add_argument("--order-id", help="order identifier of a single license")
    issue.add_argument("--batch", type=int, help="number of licenses to issue")
    issue.add_argument("--prefix", default="BOOTH", help="order id prefix for --batch")
    issue.add_argument("--days", type=int, help="validity in days (default: perpetual)")
    issue.add_argument("--file", help="write keys to this file")
    issue.set_defaults(func=cmd_issue)

    serve = subparsers.add_parser("serve", help="run the issuance service")
    serve.add_argument("--key", help="signing key file, PEM or hex")
    serve.add_argument("--orders", help="YAML file mapping order ids to e-mails")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
