import argparse
import json
import logging
import random
import sys
import time
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from poolmatch.config import DEFAULT_MATCHING_CONFIG, MATCH_ROUND_TIMEOUT_SECONDS, MATCHER_INTERVAL_SECONDS
from poolmatch.database import Base, engine
from poolmatch import models  # noqa: F401
from poolmatch.repo import SqlAnswerStore, SqlPoolStore
from poolmatch.services.compatibility import CompatibilityScorer
from poolmatch.services.pool_matcher import PoolMatcher
from poolmatch.services.pool_matching import MatchingConfig, PoolMatchingEngine


def main() -> None:
    parser = argparse.ArgumentParser(description="Run pool matching rounds")
    parser.add_argument("--pool-id", type=str, default="", help="Run one round for this pool only")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--loop", action="store_true", help="Keep running due pools every interval")
    parser.add_argument("--interval", type=int, default=MATCHER_INTERVAL_SECONDS)
    parser.add_argument("--create-tables", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    store = SqlPoolStore()
    answers = SqlAnswerStore()
    matching = PoolMatchingEngine(
        store,
        compatibility=CompatibilityScorer(answers, answers),
        config=MatchingConfig.from_mapping(DEFAULT_MATCHING_CONFIG),
    )

    if args.pool_id:
        rng = random.Random(args.seed) if args.seed is not None else None
        info = matching.run_matching(args.pool_id, deadline=time.monotonic() + MATCH_ROUND_TIMEOUT_SECONDS, rng=rng)
        print(json.dumps(info.as_dict(), indent=2))
        return

    matcher = PoolMatcher(matching, store, interval_seconds=args.interval)
    if not args.loop:
        rounds = matcher.run_once()
        print(json.dumps([r.as_dict() for r in rounds], indent=2))
        return

    matcher.start()
    try:
        while matcher.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        matcher.stop()


if __name__ == "__main__":
    main()
