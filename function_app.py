import azure.functions as func

from tvbingefriend_engagement_service.blueprints import analytics_bp, recommendations_bp

app = func.FunctionApp()

app.register_blueprint(recommendations_bp.bp)
app.register_blueprint(analytics_bp.bp)
