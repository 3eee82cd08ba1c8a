"""CLI for collapsing near-duplicate headlines before they become candidates."""

from __future__ import annotations

import logging

from dotenv import load_dotenv

from common.aws import upload_jsonl_records_to_s3
from common.cli_helpers import setup_logging
from common.local_io import read_jsonl_local, save_jsonl_records_local
from dedupe_headlines.dedupe_headlines import cluster_headlines
from dedupe_headlines.helpers import parse_dedupe_headlines_args

load_dotenv()

setup_logging()
logger = logging.getLogger(__name__)


def main() -> None:
    args = parse_dedupe_headlines_args()

    articles = list(read_jsonl_local(args.input))
    if not articles:
        logger.warning("No articles found in %s", args.input)
        return

    clusters = cluster_headlines(articles, threshold=args.threshold)
    kept = [cluster.representative for cluster in clusters]

    for cluster in clusters:
        if len(cluster.members) > 1:
            logger.info(
                "Collapsed %d headlines into '%s'",
                len(cluster.members),
                cluster.representative.get("title"),
            )

    logger.info(
        "Kept %d of %d articles (%d clusters)",
        len(kept),
        len(articles),
        len(clusters),
    )

    if args.load_s3:
        upload_jsonl_records_to_s3(kept, "deduped_articles")

    if args.load_local:
        save_jsonl_records_local(kept, "deduped_articles", output_dir=args.output_dir)


if __name__ == "__main__":
    main()
