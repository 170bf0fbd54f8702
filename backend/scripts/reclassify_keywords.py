#!/usr/bin/env python3
"""
Re-run the syntax classifier over stored keyword text and update labels
that changed. Use after editing the term lists in syntax_classifier.py.

Run from backend directory:
  python scripts/reclassify_keywords.py

Options:
  --search-terms   Also relabel stored search terms
  --dry-run        Show what would change without writing
"""

import asyncio
import argparse
import sys
from collections import Counter
from pathlib import Path

# Ensure backend root is on path
backend_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_root))

from sqlalchemy import select, update
from ppc_dashboard.database import async_session
from ppc_dashboard.models import Keyword, SearchTerm
from ppc_dashboard.services.syntax_classifier import classify


async def reclassify(model, text_column, dry_run: bool = False) -> tuple[int, int, Counter]:
    """Returns (rows scanned, rows changed, transitions old → new)."""
    transitions: Counter = Counter()
    changed = 0

    async with async_session() as db:
        result = await db.execute(select(model.id, text_column, model.syntax_group))
        rows = result.all()

        for row_id, text, current in rows:
            label = classify(text)
            if label == current:
                continue
            changed += 1
            transitions[(current, label)] += 1
            if not dry_run:
                await db.execute(
                    update(model).where(model.id == row_id).values(syntax_group=label)
                )

        if not dry_run:
            await db.commit()

    return len(rows), changed, transitions


def _report(name: str, scanned: int, changed: int, transitions: Counter, dry_run: bool) -> None:
    verb = "Would relabel" if dry_run else "Relabelled"
    print(f"  {name}: scanned {scanned}, {verb.lower()} {changed}")
    for (old, new), count in transitions.most_common(20):
        print(f"    {old or '(none)'} → {new}: {count}")


async def main():
    parser = argparse.ArgumentParser(
        description="Recompute stored syntax_group labels with the current classifier"
    )
    parser.add_argument(
        "--search-terms",
        action="store_true",
        help="Also relabel search terms",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing",
    )
    args = parser.parse_args()

    print("Reclassifying syntax groups...")
    if args.dry_run:
        print("  Mode: DRY RUN (no changes will be made)")

    scanned, changed, transitions = await reclassify(Keyword, Keyword.keyword_text, args.dry_run)
    _report("keywords", scanned, changed, transitions, args.dry_run)

    if args.search_terms:
        scanned, changed, transitions = await reclassify(SearchTerm, SearchTerm.search_term, args.dry_run)
        _report("search terms", scanned, changed, transitions, args.dry_run)

    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
