"""
Check that scheduling works for a user.

Checks:
1. The user has card state and the FSRS columns are populated
2. How many cards are due right now
3. A daily plan can be built (with a one-day pace offset)

Usage:
    python -m scripts.maintenance.check_scheduling <user_id> [--limit 10] [--pace-offset 1]
"""

import argparse
from datetime import datetime, timezone

from study_core import fsrs
from study_core.config import load_settings
from study_core.session_builders import build_daily_plan


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check the scheduler for one user")
    parser.add_argument("user_id", type=str, help="User id to check")
    parser.add_argument("--limit", type=int, default=10, help="Plan size (default: 10)")
    parser.add_argument("--pace-offset", type=int, default=1, help="Days behind schedule (default: 1)")
    parser.add_argument("--database-url", type=str, default=None, help="Override DATABASE_URL")
    args = parser.parse_args(argv)

    database_url = args.database_url or load_settings().database_url
    engine = fsrs.get_engine(database_url)
    session = fsrs.get_session_factory(engine)()
    now = datetime.now(timezone.utc)

    try:
        print("=" * 60)
        print(f"Scheduling check for user: {args.user_id}")
        print("=" * 60)

        cards = fsrs.list_user_cards(session, args.user_id)
        print(f"\nCard state: {len(cards)} cards")
        if cards:
            question_id, sample = sorted(cards.items())[0]
            print(f"  Sample question: {question_id}")
            print(f"  - State: {sample.state.name}")
            print(f"  - Due: {sample.due.isoformat()}")
            print(f"  - Stability: {sample.stability:.2f} days")
            print(f"  - Difficulty: {sample.difficulty:.2f}")
            print(f"  - Reps / lapses: {sample.reps} / {sample.lapses}")
        else:
            print("  No cards yet. The user may not have attempted any questions.")

        due = fsrs.list_due_cards(session, args.user_id, as_of=now)
        print(f"\nDue now: {len(due)} cards")

        plan = build_daily_plan(
            session,
            args.user_id,
            limit=args.limit,
            pace_offset=args.pace_offset,
            now=now,
        )
        print(f"\nDaily plan: {len(plan.items)} items (reason: {plan.reason})")
        print(f"  Mix: {plan.mix}")
        print(f"  Behind schedule: {plan.is_behind}")
        print(f"  Estimated minutes: {plan.estimated_minutes}")
        for item in plan.items:
            print(f"  [{item.category:>7}] {item.question_id}: {item.why_selected}")
    finally:
        session.close()

    return plan


if __name__ == "__main__":
    main()
