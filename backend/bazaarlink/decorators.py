# Overview: Request, role and error-mapping decorators for API routes.

from functools import wraps

from flask import request, jsonify, g, current_app

from .services import session_service
from .services.auth_service import PasswordValidationError, RegistrationError
from .services.concurrency import StockConflictError
from .services.stock_ledger_service import (
    StockError,
    ProductNotFoundError,
    InsufficientStockError,
    InvalidQuantityError,
)
from .services.order_service import (
    OrderValidationError,
    OrderNotFoundError,
    OrderStatusError,
)
from .validation import ValidationError


# Most specific first: ProductUnavailableError is an InsufficientStockError
ERROR_STATUS_CODES = (
    (ProductNotFoundError, 404),
    (OrderNotFoundError, 404),
    (InsufficientStockError, 409),
    (OrderStatusError, 409),
    (StockConflictError, 409),
    (InvalidQuantityError, 400),
    (OrderValidationError, 400),
)


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext

    Returns 401 for a missing, unknown, expired or revoked token, or a
    deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Not authorized, no token"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Capability check run before a route reaches the core services.

    Services take plain ids (buyer_id, seller_id); they never look at the
    request, so this is the only place roles are enforced.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Forbidden: insufficient role",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def json_errors(f):
    """
    Map expected business outcomes to JSON responses.

    StockError subclasses carry structured details (product, available,
    requested) that are returned to the client. Anything unexpected is
    logged with its stack trace and answered with a generic 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (ValidationError, RegistrationError, PasswordValidationError) as e:
            return jsonify({"error": str(e)}), 400
        except (StockError, StockConflictError) as e:
            for exc_type, status in ERROR_STATUS_CODES:
                if isinstance(e, exc_type):
                    return jsonify({"error": str(e), "details": e.details}), status
            return jsonify({"error": str(e), "details": e.details}), 400
        except Exception:
            current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
