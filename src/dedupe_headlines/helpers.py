"""Helper functions for dedupe_headlines CLI."""

from __future__ import annotations

import argparse

from dedupe_headlines.dedupe_headlines import JACCARD_THRESHOLD


def parse_dedupe_headlines_args() -> argparse.Namespace:
    """Parse CLI arguments for dedupe_headlines."""

    parser = argparse.ArgumentParser(description="Collapse near-duplicate headlines in a batch.")

    # Input options
    parser.add_argument(
        "--input",
        required=True,
        help="JSONL file of freshly fetched articles (one object per line with a title)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=JACCARD_THRESHOLD,
        help=f"Jaccard similarity above which titles are duplicates (default: {JACCARD_THRESHOLD})",
    )

    # Output options
    parser.add_argument("--load-s3", action="store_true", help="Upload results to S3")
    parser.add_argument("--load-local", action="store_true", help="Save results to local file")
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory for --load-local output (default: output)",
    )

    return parser.parse_args()
