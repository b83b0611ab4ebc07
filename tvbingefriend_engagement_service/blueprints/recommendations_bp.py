"""Get show recommendations and catalog lists."""
import azure.functions as func
import logging
import json

from tvbingefriend_engagement_service.services import RecommendationScorer
from tvbingefriend_engagement_service.services.catalog_sync_service import SEASONS

# Initialize blueprint
bp = func.Blueprint()

# Initialize service (singleton pattern)
recommendation_service = RecommendationScorer()

logger = logging.getLogger(__name__)

MAX_LIMIT = 50


def _json_response(payload, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload, default=str),  # default=str handles datetime
        status_code=status_code,
        mimetype="application/json"
    )


def _parse_limit(req: func.HttpRequest, default: int) -> int:
    """
    Read the limit query parameter.

    Raises:
        ValueError: If limit is not an integer between 1 and MAX_LIMIT
    """
    try:
        limit = int(req.params.get('limit', default))
    except (TypeError, ValueError):
        raise ValueError("limit must be an integer")

    if limit < 1 or limit > MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

    return limit


def _show_list_response(shows: list, **extra) -> func.HttpResponse:
    response = dict(extra)
    response['count'] = len(shows)
    response['shows'] = shows
    return _json_response(response)


@bp.route(route="shows/popular", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_popular_shows(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get the highest rated shows.

    Query Parameters:
        - limit: Number of shows (default: 10, max: 50)
    """
    try:
        limit = _parse_limit(req, 10)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        shows = recommendation_service.get_popular_shows(limit=limit)
        return _show_list_response(shows)

    except Exception as e:
        logger.error(f"Error getting popular shows: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="shows/trending", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_trending_shows(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get well rated shows.

    Query Parameters:
        - limit: Number of shows (default: 20, max: 50)
        - min_rating: Minimum rating average (default: 7.0, range: 0-10)
    """
    try:
        limit = _parse_limit(req, 20)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        min_rating = float(req.params.get('min_rating', 7.0))
    except ValueError:
        return _json_response({"error": "min_rating must be a number"}, status_code=400)

    if min_rating < 0 or min_rating > 10:
        return _json_response({"error": "min_rating must be between 0 and 10"}, status_code=400)

    try:
        shows = recommendation_service.get_trending_shows(limit=limit, min_rating=min_rating)
        return _show_list_response(shows, min_rating=min_rating)

    except Exception as e:
        logger.error(f"Error getting trending shows: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="shows/genre/{genre}", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_shows_by_genre(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get the highest rated shows in a genre.

    Query Parameters:
        - limit: Number of shows (default: 20, max: 50)
    """
    genre = req.route_params.get('genre')
    if not genre:
        return _json_response({"error": "genre is required"}, status_code=400)

    try:
        limit = _parse_limit(req, 20)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        shows = recommendation_service.get_shows_by_genre(genre, limit=limit)
        return _show_list_response(shows, genre=genre)

    except Exception as e:
        logger.error(f"Error getting shows for genre {genre}: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="shows/tags", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_shows_by_tags(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get the highest rated shows carrying any of the given tags.

    Query Parameters:
        - tags: Comma-separated tags (required)
        - limit: Number of shows (default: 20, max: 50)
    """
    tags = [tag.strip() for tag in req.params.get('tags', '').split(',') if tag.strip()]
    if not tags:
        return _json_response({"error": "tags is required"}, status_code=400)

    try:
        limit = _parse_limit(req, 20)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        shows = recommendation_service.get_shows_by_tags(tags, limit=limit)
        return _show_list_response(shows, tags=tags)

    except Exception as e:
        logger.error(f"Error getting shows for tags {tags}: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="shows/seasonal/{season}/{year}", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_seasonal_shows(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get the highest rated shows of a season.

    Query Parameters:
        - limit: Number of shows (default: 20, max: 50)
    """
    season = (req.route_params.get('season') or '').capitalize()
    if season not in SEASONS:
        return _json_response(
            {"error": f"season must be one of {', '.join(SEASONS)}"},
            status_code=400
        )

    try:
        year = int(req.route_params.get('year'))
    except (TypeError, ValueError):
        return _json_response({"error": "year must be an integer"}, status_code=400)

    try:
        limit = _parse_limit(req, 20)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        shows = recommendation_service.get_seasonal_shows(season, year, limit=limit)
        return _show_list_response(shows, season=season, year=year)

    except Exception as e:
        logger.error(f"Error getting seasonal shows: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="shows/{show_id:int}/similar", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_similar_shows(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get shows sharing a genre or tag with a show.

    Query Parameters:
        - limit: Number of shows (default: 10, max: 50)
    """
    show_id = req.route_params.get('show_id')

    if not show_id:
        return _json_response({"error": "show_id is required"}, status_code=400)

    try:
        show_id = int(show_id)
    except ValueError:
        return _json_response({"error": "show_id must be an integer"}, status_code=400)

    try:
        limit = _parse_limit(req, 10)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        shows = recommendation_service.get_similar_shows(show_id, limit=limit)
        return _show_list_response(shows, show_id=show_id)

    except Exception as e:
        logger.error(f"Error getting shows similar to {show_id}: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


@bp.route(route="users/{user_id}/recommendations", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_user_recommendations(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get personalized recommendations for a user.

    Users without watch history get the popular shows.

    Query Parameters:
        - limit: Number of shows (default: 10, max: 50)
    """
    user_id = req.route_params.get('user_id')

    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        limit = _parse_limit(req, 10)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        recommendations = recommendation_service.get_personalized_recommendations(user_id, limit=limit)

        return _json_response({
            "user_id": user_id,
            "count": len(recommendations),
            "recommendations": recommendations
        })

    except Exception as e:
        logger.error(f"Error getting recommendations for user {user_id}: {str(e)}", exc_info=True)
        return _json_response({"error": "Internal server error"}, status_code=500)


# noinspection PyUnusedLocal
@bp.route(route="recommendations/health", methods=["GET"])
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint."""
    return _json_response({
        "status": "healthy",
        "service": "tv-engagement-service",
        "version": "1.0.0"
    })
