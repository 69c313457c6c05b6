from classtrack.auth.deps import CurrentUser, get_current_user, get_reference_today, require_user

__all__ = ["CurrentUser", "get_current_user", "get_reference_today", "require_user"]
