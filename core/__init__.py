# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the authorization and invite logic:
# - models/: Pydantic schemas for data validation
# - permissions.py: Static role -> capability table
# - guard.py: Per-request route access decisions
# - services/: Invite, profile, auth and user operations over Supabase
#
# Code in this package does not use FastAPI or Celery directly.
# This keeps the logic testable and reusable.
# =============================================================================
