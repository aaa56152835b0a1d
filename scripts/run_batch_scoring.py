from __future__ import annotations

import argparse
import json

from app.core.errors import PartialBatchFailure
from app.core.logging import configure_logging
from app.services.scoring.contact_scoring import batch_score


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute priority, opportunity and strategic scores for an account.")
    parser.add_argument("account_id", help="Account whose contacts are scored.")
    parser.add_argument("--contact-id", action="append", dest="contact_ids", help="Limit to these contacts. Repeatable.")
    parser.add_argument("--goal", action="append", dest="goals", help="Goal keyword for professional relevance. Repeatable.")
    parser.add_argument("--strict", action="store_true", help="Exit non-zero when any contact was skipped.")
    args = parser.parse_args()

    configure_logging()
    result = batch_score(args.account_id, args.contact_ids, args.goals)
    print(json.dumps(result.as_dict(), indent=2, sort_keys=True))

    if args.strict:
        try:
            result.raise_for_failures()
        except PartialBatchFailure as exc:
            raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
