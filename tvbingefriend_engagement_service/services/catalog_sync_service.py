"""Service to mirror show metadata from the show microservice"""
from typing import Callable, List, Dict, Optional
import time
import logging
import requests

from requests.adapters import HTTPAdapter
from sqlalchemy.orm import Session
from urllib3.util.retry import Retry

from tvbingefriend_engagement_service.config import get_service_url
from tvbingefriend_engagement_service.models.database import SessionLocal
from tvbingefriend_engagement_service.repos import ShowCatalogRepository

logger = logging.getLogger(__name__)

SEASONS = ('Spring', 'Summer', 'Fall', 'Winter')


def _release_year(show: Dict) -> Optional[int]:
    year = show.get('year')
    if year:
        return int(year)

    premiered = show.get('premiered')
    if premiered and len(premiered) >= 4 and premiered[:4].isdigit():
        return int(premiered[:4])

    return None


def to_show_profile_data(show: Dict) -> Dict:
    """
    Map a show service payload to ShowProfile fields.

    Accepts both ``id``/``name`` and ``show_id``/``title`` keys and either a
    ``year`` or a ``premiered`` date. Unknown seasons are dropped.

    Raises:
        KeyError: If the payload has no ID or no title
    """
    rating = show.get('rating') or {}
    season = show.get('season')

    return {
        'show_id': int(show['id'] if 'id' in show else show['show_id']),
        'title': show['name'] if 'name' in show else show['title'],
        'genres': list(show.get('genres') or []),
        'tags': list(show.get('tags') or []),
        'rating_average': rating.get('average') or 0.0,
        'rating_count': rating.get('count') or 0,
        'is_popular': bool(show.get('isPopular', show.get('is_popular', False))),
        'release_year': _release_year(show),
        'season': season if season in SEASONS else None,
    }


class ShowCatalogClient:
    """HTTP client for the show microservice."""

    def __init__(self, show_service_url: Optional[str] = None):
        # Default to localhost for development
        self.show_service_url = show_service_url or get_service_url('show', 7071)

        # Configure session with retries
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        # noinspection HttpUrlsUsage
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get_shows_bulk(self, offset: int = 0, limit: int = 100) -> Dict:
        """
        Fetch one page of shows from the bulk endpoint.

        Returns:
            {
                "shows": [...],
                "total": 12345,
                "offset": 0,
                "limit": 100
            }
        """
        url = f"{self.show_service_url}/get_shows_bulk"
        params = {'offset': offset, 'limit': limit}
        response = self.session.get(url, params=params, timeout=10)
        response.raise_for_status()
        return response.json()

    def get_all_shows(
            self,
            batch_size: int = 100,
            max_shows: Optional[int] = None,
            delay: float = 0.1
    ) -> List[Dict]:
        """
        Fetch all shows using pagination.

        Args:
            batch_size: Number of shows per request
            max_shows: Optional limit on total shows to fetch
            delay: Seconds to wait between pages

        Returns:
            List of show dictionaries
        """
        all_shows: List[Dict] = []
        offset = 0

        logger.info(f"Fetching all shows (batch size: {batch_size})...")

        while True:
            if max_shows and len(all_shows) >= max_shows:
                logger.info(f"Reached max_shows limit: {max_shows}")
                all_shows = all_shows[:max_shows]
                break

            result = self.get_shows_bulk(offset=offset, limit=batch_size)
            shows = result.get('shows', [])

            if not shows:
                break

            all_shows.extend(shows)
            logger.info(f"  Loaded {len(all_shows)} shows...")

            # Fewer shows than requested means we're at the end
            if len(shows) < batch_size:
                break

            offset += batch_size
            if delay:
                time.sleep(delay)  # Rate limiting

        logger.info(f"✓ Loaded {len(all_shows)} total shows")
        return all_shows


class CatalogSyncService:
    """Replaces the local show profile mirror with the show service's catalog."""

    def __init__(
            self,
            client: Optional[ShowCatalogClient] = None,
            session_factory: Optional[Callable[[], Session]] = None
    ):
        self.client = client or ShowCatalogClient()
        self.session_factory = session_factory or SessionLocal

    def sync_catalog(self, batch_size: int = 100, max_shows: Optional[int] = None) -> int:
        """
        Fetch every show and store it as a show profile.

        Shows missing an ID or title are skipped with a warning.

        Returns:
            Number of show profiles stored
        """
        shows = self.client.get_all_shows(batch_size=batch_size, max_shows=max_shows)

        profiles = []
        for show in shows:
            try:
                profiles.append(to_show_profile_data(show))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed show payload {show.get('id')}: {e}")

        db = self.session_factory()
        try:
            count = ShowCatalogRepository(db).bulk_store_shows(profiles, batch_size=batch_size)
        finally:
            db.close()

        logger.info(f"✓ Synced {count} shows into the catalog mirror")
        return count
