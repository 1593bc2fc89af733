"""Load a tournament feed export into the match table.

The export is a JSON list of matches shaped like the ``POST /matches`` body::

    python seed.py schedule.json --encounter day-1
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from app import db
from app.exceptions import MatchAlreadyExists
from app.schemas import MatchCreate
from app.services import live_scoring

logger = logging.getLogger("seed")


def load_feed(path: Path, encounter_id: str | None = None) -> list[MatchCreate]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("matches", [])
    if not isinstance(raw, list):
        raise ValueError("feed export must be a list of matches")

    matches = []
    for index, item in enumerate(raw, start=1):
        if encounter_id and not item.get("encounterId"):
            item = {**item, "encounterId": encounter_id}
        try:
            matches.append(MatchCreate.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping feed entry #%d: %s", index, exc.errors()[0]["msg"])
    return matches


async def seed(matches: list[MatchCreate]) -> int:
    db.get_engine()
    assert db.AsyncSessionLocal is not None
    created = 0
    async with db.AsyncSessionLocal() as session:
        for body in matches:
            try:
                await live_scoring.create_match(session, body)
            except MatchAlreadyExists:
                logger.info("Feed match %s already loaded", body.feed_match_id)
                continue
            created += 1
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("feed", type=Path, help="tournament feed export (JSON)")
    parser.add_argument("--encounter", dest="encounter_id", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    matches = load_feed(args.feed, args.encounter_id)
    created = asyncio.run(seed(matches))
    logger.info("Loaded %d of %d matches", created, len(matches))


if __name__ == "__main__":
    main()
