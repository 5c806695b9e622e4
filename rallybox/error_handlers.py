from flask import Blueprint, current_app, jsonify

from .errors import AppError, InternalError, NotFoundError, StateConflictError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors with the error kind and reason."""
    current_app.logger.warning(f"{error.kind}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(StateConflictError)
def handle_state_conflict_error(error):
    """Handles requests that are illegal in the competition's current state."""
    current_app.logger.warning(f"{error.kind}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(InternalError)
def handle_internal_error(error):
    """Handles storage failures and timeouts; the request can be retried."""
    current_app.logger.error(f"Internal Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.error(f"Application Error: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return (
        jsonify({"success": False, "error": "NotFoundError", "message": "Not found."}),
        404,
    )


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    """Handles requests using the wrong HTTP method."""
    return (
        jsonify(
            {
                "success": False,
                "error": "MethodNotAllowed",
                "message": "Method not allowed.",
            }
        ),
        405,
    )


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return (
        jsonify(
            {
                "success": False,
                "error": "InternalError",
                "message": "An unexpected error occurred. Please try again later.",
            }
        ),
        500,
    )
