"""User and site analytics endpoints."""
import azure.functions as func
import logging
import json

from tvbingefriend_engagement_service.services import (
    AnalyticsDashboardService,
    ClubActivity,
    GlobalAnalyticsAggregator,
    RankingService,
    UserAnalyticsAggregator,
)

# Initialize blueprint
bp = func.Blueprint()

# Initialize services (singleton pattern)
global_analytics_service = GlobalAnalyticsAggregator()
user_analytics_service = UserAnalyticsAggregator(activity_feed=global_analytics_service)
ranking_service = RankingService()
dashboard_service = AnalyticsDashboardService(
    user_analytics=user_analytics_service,
    global_analytics=global_analytics_service,
    ranking=ranking_service
)

logger = logging.getLogger(__name__)

MAX_LIMIT = 50


def _json_response(payload, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload, default=str),  # default=str handles datetime
        status_code=status_code,
        mimetype="application/json"
    )


def _server_error() -> func.HttpResponse:
    return _json_response({"error": "Internal server error"}, status_code=500)


def _get_body(req: func.HttpRequest) -> dict:
    """
    Read the JSON request body (an empty body is an empty dict).

    Raises:
        ValueError: If the body is not a JSON object
    """
    if not req.get_body():
        return {}

    body = req.get_json()
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


def _get_int(body: dict, key: str, required: bool = False, minimum: int | None = None) -> int | None:
    """
    Read an integer field from a request body.

    Raises:
        ValueError: If the field is missing (when required), not an integer or below minimum
    """
    value = body.get(key)
    if value is None:
        if required:
            raise ValueError(f"{key} is required")
        return None

    if isinstance(value, bool):
        raise ValueError(f"{key} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer")

    if minimum is not None and value < minimum:
        raise ValueError(f"{key} must be at least {minimum}")
    return value


def _ack(user_id: str, message: str, analytics: dict) -> func.HttpResponse:
    return _json_response({
        "message": message,
        "user_id": user_id,
        "analytics": analytics
    })


# noinspection PyUnusedLocal
@bp.route(route="analytics/public", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_public_analytics(req: func.HttpRequest) -> func.HttpResponse:
    """Site totals with the top 5 shows and genres."""
    try:
        summary = global_analytics_service.get_public_summary(top_n=5)
        return _json_response(summary)

    except Exception as e:
        logger.error(f"Error getting public analytics: {str(e)}", exc_info=True)
        return _server_error()


# noinspection PyUnusedLocal
@bp.route(route="analytics/global", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
def get_global_analytics(req: func.HttpRequest) -> func.HttpResponse:
    """Recompute and return the global analytics snapshot (admin)."""
    try:
        snapshot = global_analytics_service.recompute_snapshot()
        return _json_response(snapshot)

    except Exception as e:
        logger.error(f"Error recomputing global analytics: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="analytics/recent-activity", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_recent_activity(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get the site-wide recent activity feed, newest first.

    Query Parameters:
        - limit: Number of events (default: all, max: 50)
    """
    limit = req.params.get('limit')
    if limit is not None:
        try:
            limit = int(limit)
        except ValueError:
            return _json_response({"error": "limit must be an integer"}, status_code=400)
        if limit < 1 or limit > MAX_LIMIT:
            return _json_response({"error": f"limit must be between 1 and {MAX_LIMIT}"}, status_code=400)

    try:
        activity = global_analytics_service.get_recent_activity(limit=limit)
        return _json_response({"count": len(activity), "recent_activity": activity})

    except Exception as e:
        logger.error(f"Error getting recent activity: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="analytics/leaderboard", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_leaderboard(req: func.HttpRequest) -> func.HttpResponse:
    """
    Get users ranked by episodes watched.

    Query Parameters:
        - limit: Number of users (default: 10, max: 50)
    """
    try:
        limit = int(req.params.get('limit', 10))
    except ValueError:
        return _json_response({"error": "limit must be an integer"}, status_code=400)

    if limit < 1 or limit > MAX_LIMIT:
        return _json_response({"error": f"limit must be between 1 and {MAX_LIMIT}"}, status_code=400)

    try:
        leaderboard = ranking_service.get_leaderboard(limit=limit)
        return _json_response({"count": len(leaderboard), "leaderboard": leaderboard})

    except Exception as e:
        logger.error(f"Error getting leaderboard: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/analytics", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_user_analytics(req: func.HttpRequest) -> func.HttpResponse:
    """Get a user's analytics counters."""
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        analytics = user_analytics_service.get_user_analytics(user_id)
        return _json_response(analytics)

    except Exception as e:
        logger.error(f"Error getting analytics for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/dashboard", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_user_dashboard(req: func.HttpRequest) -> func.HttpResponse:
    """Get a user's analytics dashboard."""
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        dashboard = dashboard_service.get_dashboard(user_id)
        return _json_response(dashboard)

    except Exception as e:
        logger.error(f"Error building dashboard for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/analytics/track-episode", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def track_episode(req: func.HttpRequest) -> func.HttpResponse:
    """
    Track watched episodes.

    Body:
        - show_id: Show ID (required)
        - duration_minutes: Minutes per episode (optional)
        - episode_count: Number of episodes watched (default: 1)
    """
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        body = _get_body(req)
        show_id = _get_int(body, 'show_id', required=True)
        duration_minutes = _get_int(body, 'duration_minutes', minimum=0)
        episode_count = _get_int(body, 'episode_count', minimum=1) or 1
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        analytics = user_analytics_service.record_episode_watched(
            user_id,
            show_id,
            duration_minutes=duration_minutes,
            episode_count=episode_count
        )
        return _ack(user_id, "Episode tracked", analytics)

    except Exception as e:
        logger.error(f"Error tracking episode for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/analytics/track-review", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def track_review(req: func.HttpRequest) -> func.HttpResponse:
    """
    Track a posted review.

    Body:
        - show_id: Show ID (required)
    """
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        show_id = _get_int(_get_body(req), 'show_id', required=True)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        analytics = user_analytics_service.record_review_posted(user_id, show_id)
        return _ack(user_id, "Review tracked", analytics)

    except Exception as e:
        logger.error(f"Error tracking review for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/analytics/track-watchlist", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def track_watchlist(req: func.HttpRequest) -> func.HttpResponse:
    """
    Track a show added to the watchlist.

    Body:
        - show_id: Show ID (required)
    """
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        show_id = _get_int(_get_body(req), 'show_id', required=True)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        analytics = user_analytics_service.record_show_added(user_id, show_id)
        return _ack(user_id, "Watchlist addition tracked", analytics)

    except Exception as e:
        logger.error(f"Error tracking watchlist addition for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(route="users/{user_id}/analytics/track-club", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
def track_club(req: func.HttpRequest) -> func.HttpResponse:
    """
    Track club activity.

    Body:
        - activity_type: post, like, join or poll_vote (required)
    """
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        activity_type = _get_body(req).get('activity_type')
        if not activity_type:
            raise ValueError("activity_type is required")
        activity_type = ClubActivity.parse(activity_type)
    except ValueError as e:
        return _json_response({"error": str(e)}, status_code=400)

    try:
        analytics = user_analytics_service.record_club_activity(user_id, activity_type)
        return _ack(user_id, "Club activity tracked", analytics)

    except Exception as e:
        logger.error(f"Error tracking club activity for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()


@bp.route(
    route="users/{user_id}/analytics/reconcile-watchlist-status",
    methods=["POST"],
    auth_level=func.AuthLevel.ANONYMOUS
)
def reconcile_watchlist_status(req: func.HttpRequest) -> func.HttpResponse:
    """Recount a user's watchlist status counters from their watch history."""
    user_id = req.route_params.get('user_id')
    if not user_id:
        return _json_response({"error": "user_id is required"}, status_code=400)

    try:
        analytics = user_analytics_service.reconcile_watchlist_status_counts(user_id)
        return _ack(user_id, "Watchlist status counts reconciled", analytics)

    except Exception as e:
        logger.error(f"Error reconciling watchlist status for user {user_id}: {str(e)}", exc_info=True)
        return _server_error()
