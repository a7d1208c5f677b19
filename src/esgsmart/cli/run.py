# src/esgsmart/cli/run.py

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from esgsmart.config import load_config, setup_logging
from esgsmart.errors import ConfigurationMissing, ServiceError
from esgsmart.pipeline.poller import watch_document
from esgsmart.pipeline.report import build_report
from esgsmart.pipeline.trigger import submit_document

logger = logging.getLogger(__name__)

EXIT_READY = 0
EXIT_TIMEOUT = 1
EXIT_CONFIG = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Submit an ESG report (or pick up an existing one) and wait for its artifacts."
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--pdf",
        help="Path to a sustainability report PDF to submit.",
    )
    source.add_argument(
        "--document-id",
        help="Document id of an earlier submission to watch.",
    )

    parser.add_argument(
        "--batch-path",
        help="DBFS batch file holding the summary row (with --document-id).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between polls (default: ESGSMART_POLL_SECONDS or 3).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up after this many seconds (default: wait forever).",
    )
    parser.add_argument(
        "--output",
        "-o",
        help="Where to save the report JSON (default: print to stdout).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: ESGSMART_LOG_LEVEL or INFO).",
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.log_level:
        setup_logging(args.log_level)

    cfg = load_config()
    interval = args.interval if args.interval is not None else cfg.poll_seconds

    try:
        if args.pdf:
            pdf_path = Path(args.pdf)
            if not pdf_path.exists():
                logger.error("Input PDF not found: %s", pdf_path)
                return EXIT_CONFIG

            logger.info("Submitting %s...", pdf_path)
            submission = submit_document(str(pdf_path))
            document_id, batch_path = submission.document_id, submission.batch_path
            logger.info(
                "Submitted as %s (batch=%s, run_id=%s)",
                document_id, batch_path, submission.job_run_id,
            )
        else:
            document_id, batch_path = args.document_id, args.batch_path

        logger.info("Waiting for artifacts of %s (every %.1fs)...", document_id, interval)
        session = watch_document(document_id, batch_path, timeout=args.timeout, interval=interval)
    except ConfigurationMissing as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except ServiceError as e:
        logger.error("Submission failed: %s", e)
        return EXIT_CONFIG

    if session.response is None:
        logger.error("No fetch cycle completed for %s", document_id)
        return EXIT_TIMEOUT

    report = build_report(session.response)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        logger.info("Saved report to %s", out_path)
    else:
        print(json.dumps(report, indent=2, ensure_ascii=False))

    if not session.readiness.all:
        logger.warning("Timed out with ready=%s", session.readiness.to_dict())
        return EXIT_TIMEOUT
    return EXIT_READY


if __name__ == "__main__":
    sys.exit(main())
