"""Request an age and nationality disclosure from a ZKPassport wallet.

Prints the request URL (render it as a QR code for the wallet to scan) and
logs lifecycle events until the wallet finishes, rejects, or the timeout
expires.
"""

from __future__ import annotations

import argparse
import logging
import threading

from zkpassport_sdk import SANCTIONED_COUNTRIES, ZkPassport

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--domain", default="demo.zkpassport.id", help="Requesting domain shown to the wallet")
    parser.add_argument("--topic", default=None, help="Fixed request id (random when omitted)")
    parser.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait for the wallet")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    finished = threading.Event()

    with ZkPassport(args.domain) as zk:
        descriptor = (
            zk.request(topic_override=args.topic)
            .eq("fullname", "John Doe")
            .range("age", 18, 25)
            .in_("nationality", ["USA", "GBR", "Germany", "Canada", "France", "Japan"])
            .out("nationality", SANCTIONED_COUNTRIES)
            .check_aml()
            .done()
        )

        @descriptor.on_qr_code_scanned
        def scanned() -> None:
            logger.info("QR code scanned")

        @descriptor.on_generating_proof
        def generating(topic: str) -> None:
            logger.info("Generating proof for %s", topic)

        @descriptor.on_proof_generated
        def generated(proof: object) -> None:
            logger.info("Proof generated: %s", proof)
            finished.set()

        @descriptor.on_reject
        def rejected() -> None:
            logger.info("User rejected the request")
            finished.set()

        @descriptor.on_error
        def failed(error: object) -> None:
            logger.error("Request failed: %s", error)
            finished.set()

        print(descriptor.url)
        if not finished.wait(args.timeout):
            logger.warning("Timed out waiting for the wallet")
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
