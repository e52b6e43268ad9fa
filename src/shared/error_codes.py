# src/shared/error_codes.py
# Central mapping that aligns with the error contract.
# Keep keys stable; admin UI and API clients rely on these.
# Messages are deliberately generic: the reason a request was denied never
# leaves the process.
ERROR_CODES = {
    # ─── Validation & Requests ──────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },

    # ─── Authentication & Authorization ────────────────────────────────────
    "unauthorized": {
        "http": 401,
        "message": "Authentication required."
    },
    "invalid_credentials": {
        "http": 401,
        "message": "Invalid email or password."
    },
    "forbidden": {
        "http": 403,
        "message": "Forbidden."
    },

    # ─── Tenancy ───────────────────────────────────────────────────────────
    "tenant_not_found": {
        "http": 404,
        "message": "Site not found."
    },
    "not_found": {
        "http": 404,
        "message": "Resource not found."
    },

    # ─── Throttling ────────────────────────────────────────────────────────
    "rate_limited": {
        "http": 429,
        "message": "Too many requests. Please try again later."
    },

    # ─── Server ────────────────────────────────────────────────────────────
    "internal_error": {
        "http": 500,
        "message": "Internal server error."
    },
}
