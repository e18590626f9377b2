"""
Refresh elapsed_days on a user's cards.

Safe to run repeatedly: cards whose stored value is already within 0.1 days
of the true elapsed time are left untouched. No scheduling decisions are made.

Usage:
    python -m scripts.maintenance.recalculate_elapsed <user_id> [<user_id> ...]
"""

import argparse
import logging

from study_core import fsrs
from study_core.config import load_settings


def main(argv=None):
    parser = argparse.ArgumentParser(description="Recalculate FSRS elapsed days for users")
    parser.add_argument("user_ids", nargs="+", help="User ids to refresh")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    database_url = args.database_url or load_settings().database_url
    engine = fsrs.get_engine(database_url)
    fsrs.init_db(engine)
    session_factory = fsrs.get_session_factory(engine)

    totals = {}
    for user_id in args.user_ids:
        session = session_factory()
        try:
            updated, processed = fsrs.recalculate_elapsed_for_user(session, user_id)
            session.commit()
        finally:
            session.close()
        totals[user_id] = (updated, processed)
        print(f"{user_id}: {updated} updated / {processed} processed")

    return totals


if __name__ == "__main__":
    main()
