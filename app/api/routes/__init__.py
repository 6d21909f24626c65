from . import auth, courses, progress, users

__all__ = ["auth", "courses", "progress", "users"]
