"""
Identity is established upstream (API gateway). Requests reach us with:

    X-User-Id:   the rider or driver id
    X-User-Role: rider | driver | system

This class only turns those headers into request.user.
"""
from rest_framework import authentication, exceptions

from rides.models import Actor, ActorRole


class GatewayUser:
    is_authenticated = True
    is_anonymous = False

    def __init__(self, user_id: str, role: ActorRole):
        self.id = user_id
        self.role = role

    @property
    def actor(self) -> Actor:
        return Actor(self.id, self.role)

    @property
    def is_rider(self) -> bool:
        return self.role == ActorRole.RIDER

    @property
    def is_driver(self) -> bool:
        return self.role == ActorRole.DRIVER

    def __str__(self):
        return f"{self.role.value}:{self.id}"


class GatewayHeaderAuthentication(authentication.BaseAuthentication):
    def authenticate(self, request):
        user_id = request.META.get("HTTP_X_USER_ID", "").strip()
        if not user_id:
            return None  # anonymous; IsAuthenticated rejects it

        raw_role = request.META.get("HTTP_X_USER_ROLE", "").strip().lower()
        try:
            role = ActorRole(raw_role)
        except ValueError:
            raise exceptions.AuthenticationFailed("X-User-Role must be rider, driver or system")

        return GatewayUser(user_id, role), None

    def authenticate_header(self, request):
        return "Gateway"
