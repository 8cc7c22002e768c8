from .user import User
from .cv import CV
from .user_token import UserToken
from .ai_usage import AIUsage

__all__ = [
    "User",
    "CV",
    "UserToken",
    "AIUsage",
]
