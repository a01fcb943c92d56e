from .auth_session import AuthenticationSession, AuthState

__all__ = ["AuthenticationSession", "AuthState"]
