import logging

from rest_framework import authentication

from .exceptions import AuthenticationError
from .integration import IdentityClient, ServiceEndpoints

logger = logging.getLogger(__name__)


class IntrospectionAuthentication(authentication.BaseAuthentication):
    """
    Bearer token authentication backed by the external user service.
    The token is never validated locally: the identity service answers for it,
    and any failure there is treated as an invalid token (fail closed).
    """
    keyword = "Bearer"

    def authenticate(self, request):
        auth = request.headers.get("Authorization", "")
        if not auth:
            return None

        if not auth.startswith(f"{self.keyword} ") or not auth.split(" ", 1)[1].strip():
            raise AuthenticationError("Unauthorized: missing or invalid Bearer token.")
        token = auth.split(" ", 1)[1].strip()

        principal = IdentityClient(ServiceEndpoints.from_settings()).introspect(token)
        if principal is None:
            raise AuthenticationError("Unauthorized: invalid token.")

        logger.debug("authenticated principal id=%s role=%s", principal.id, principal.role)
        return (principal, token)

    def authenticate_header(self, request):
        return f'{self.keyword} realm="api"'
