"""
Refresh the global analytics snapshot.
Optionally re-syncs the show catalog mirror from the show service first.
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import argparse
import logging

from tvbingefriend_engagement_service.services import (
    CatalogSyncService,
    GlobalAnalyticsAggregator,
    ShowCatalogClient,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def sync_catalog(
    show_service_url: str = None,
    batch_size: int = 100,
    max_shows: int = None
) -> int:
    """
    Mirror the show service's catalog into the show profile table.

    Args:
        show_service_url: Optional custom show service URL
        batch_size: Number of shows to fetch per batch
        max_shows: Optional limit (for testing, None for production)

    Returns:
        Number of shows stored
    """
    logger.info("=" * 70)
    logger.info("SYNCING SHOW CATALOG")
    logger.info("=" * 70)

    service = CatalogSyncService(client=ShowCatalogClient(show_service_url=show_service_url))
    return service.sync_catalog(batch_size=batch_size, max_shows=max_shows)


def log_snapshot(snapshot: dict) -> None:
    """Log a summary of a global analytics snapshot."""
    logger.info(f"Snapshot version: {snapshot['version']}")
    logger.info(f"Users: {snapshot['total_users']}")
    logger.info(f"Shows: {snapshot['total_shows']}")
    logger.info(f"Episodes tracked: {snapshot['total_episodes_tracked']}")
    logger.info(f"Watch time (minutes): {snapshot['total_watch_time_minutes']}")
    logger.info(f"Reviews: {snapshot['total_reviews']}")
    logger.info(f"Clubs: {snapshot['total_clubs']}")
    logger.info(
        f"Active users (day/week/month): {snapshot['daily_active_users']}/"
        f"{snapshot['weekly_active_users']}/{snapshot['monthly_active_users']}"
    )

    if snapshot['most_watched_shows']:
        logger.info("Most watched shows:")
        for i, show in enumerate(snapshot['most_watched_shows'][:5], 1):
            logger.info(f"  {i}. {show['title']} ({show['watch_count']} watchers)")

    if snapshot['top_genres']:
        genres = ', '.join(f"{g['genre']} ({g['count']})" for g in snapshot['top_genres'][:5])
        logger.info(f"Top genres: {genres}")


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description="Recompute the global analytics snapshot"
    )
    parser.add_argument(
        "--sync-catalog",
        action="store_true",
        help="Re-sync the show catalog from the show service before recomputing",
    )
    parser.add_argument(
        "--show-service-url",
        type=str,
        default=None,
        help="Show service base URL (default: SHOW_SERVICE_URL config)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Shows fetched per request during catalog sync (default: 100)",
    )
    parser.add_argument(
        "--max-shows",
        type=int,
        default=None,
        help="Maximum number of shows to sync (for testing)",
    )

    args = parser.parse_args()

    if args.batch_size < 1:
        logger.error("Error: --batch-size must be at least 1")
        sys.exit(1)

    try:
        if args.sync_catalog:
            count = sync_catalog(
                show_service_url=args.show_service_url,
                batch_size=args.batch_size,
                max_shows=args.max_shows,
            )
            logger.info(f"✓ Synced {count} shows")

        logger.info("=" * 70)
        logger.info("RECOMPUTING GLOBAL ANALYTICS")
        logger.info("=" * 70)

        snapshot = GlobalAnalyticsAggregator().recompute_snapshot()
        log_snapshot(snapshot)

        logger.info("\n" + "=" * 70)
        logger.info("✓ GLOBAL ANALYTICS REFRESH COMPLETE")
        logger.info("=" * 70)

        return snapshot

    except Exception as e:
        logger.error(f"Error refreshing global analytics: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
