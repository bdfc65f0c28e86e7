from flask import Flask, jsonify

from auth_token_validation import current_token
from examples.demo.app_config import auth


def create_app() -> Flask:
    """
    Create and configure the Flask application with bearer token validation.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    auth.init_app(app)

    @app.get("/api/test-access")
    @auth.require()
    def test_access():
        """
        Test endpoint to check if the caller is authenticated.
        Returns the verified subject for frontend testing.
        """
        return jsonify(
            {"status": "success", "subject": current_token().subject, "authenticated": True}
        ), 200

    @app.get("/health/auth")
    def auth_health():
        """Report whether the issuer's public keys can be fetched."""
        payload, status = auth.healthcheck()
        return jsonify(payload), status

    # Error handlers for rejected tokens
    @app.errorhandler(401)
    def unauthorized(error):
        """Handle missing or invalid tokens."""
        return jsonify(
            {
                "status": "denied",
                "message": error.description,
                "authenticated": False,
            }
        ), 401

    @app.errorhandler(403)
    def forbidden(error):
        """Handle tokens signed by a key the issuer does not publish."""
        return jsonify(
            {
                "status": "denied",
                "message": error.description,
                "authenticated": False,
            }
        ), 403

    @app.errorhandler(503)
    def unavailable(error):
        """Handle key server outages."""
        return jsonify(
            {
                "status": "error",
                "message": "Authentication is temporarily unavailable. Please try again later.",
            }
        ), 503

    return app


if __name__ == "__main__":
    create_app().run(port=5001)
