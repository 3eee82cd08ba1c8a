"""CLI entry point for inspecting and adjusting the quota snapshot."""

from __future__ import annotations

import logging

from dotenv import load_dotenv

from common.cli_helpers import setup_logging
from common.config import get_config, load_config, set_config
from quota.helpers import parse_quota_args
from quota.quota_gate import open_quota_gate

load_dotenv()

logger = logging.getLogger(__name__)


def main() -> None:
    args = parse_quota_args()
    if args.config:
        set_config(load_config(args.config))
    config = get_config()
    setup_logging(config.log_level)

    gate = open_quota_gate(config.quota)
    try:
        if args.clear:
            gate.clear()
        if args.rate_limited_for is not None:
            gate.record_rate_limit_response(args.rate_limited_for or None)
        if args.remaining is not None:
            gate.update_remaining(args.remaining)
        gate.flush()

        if gate.is_rate_limited():
            print(f"Rate limited, retry in {gate.rate_limit_minutes_remaining()} minutes")
        else:
            print("Not rate limited")
        remaining = gate.remaining()
        print(f"Remaining calls: {remaining if remaining is not None else 'unknown'}")
    finally:
        gate.close()


if __name__ == "__main__":
    main()
