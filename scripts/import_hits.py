"""
Import a log of hits into the ``ref_counts`` table.

The log is JSON lines, one hit per line, e.g.

    {"site": 1, "path": "/", "referrer": "https://t.co/abc", "query": [],
     "date": "2024-03-29T01:23:45", "unique": true}

Usage: python3 scripts/import_hits.py hits.jsonl [refs.sqlite]
"""

import datetime
import json
import sys

import tqdm

from refstats.config import Site
from refstats.database import RefCountsDatabase
from refstats.date_helpers import now
from refstats.referrers import classify_referrer


def import_hits(db: RefCountsDatabase, log_path: str) -> None:
    with open(log_path) as in_file:
        lines = in_file.readlines()

    for line in tqdm.tqdm(lines):
        if not line.strip():
            continue

        hit = json.loads(line)

        referrer = classify_referrer(
            hit.get("referrer") or "",
            query=tuple(tuple(q) for q in hit.get("query", [])),
        )

        if hit.get("date"):
            hour = datetime.datetime.fromisoformat(hit["date"])
        else:
            hour = now()

        db.record_ref(
            Site(id=hit["site"]),
            path=hit["path"],
            hour=hour,
            referrer=referrer,
            unique=bool(hit.get("unique")),
        )


if __name__ == "__main__":
    try:
        log_path = sys.argv[1]
    except IndexError:
        sys.exit(f"Usage: {__file__} <HITS_JSONL> [<DATABASE>]")

    db_path = sys.argv[2] if len(sys.argv) > 2 else "refs.sqlite"

    db = RefCountsDatabase(db_path)
    import_hits(db, log_path)
    db.close()
