import uuid
from dataclasses import dataclass

from rest_framework import authentication, exceptions, permissions

from api.exceptions import PermissionDenied

ROLE_CUSTOMER = 'customer'
ROLE_OPERATOR = 'operator'
ROLES = (ROLE_CUSTOMER, ROLE_OPERATOR)


@dataclass(frozen=True)
class Actor:
    """
    Request-scoped identity handed over by the upstream identity service.
    For customers ``id`` is the Customer primary key; for operators it is the
    employee id kept on the payment records they verify.
    """
    id: uuid.UUID
    role: str

    is_authenticated = True

    @property
    def is_customer(self):
        return self.role == ROLE_CUSTOMER

    @property
    def is_operator(self):
        return self.role == ROLE_OPERATOR

    def __str__(self):
        return f"{self.role}:{self.id}"


class GatewayIdentityAuthentication(authentication.BaseAuthentication):
    """
    Trusts the identity headers set by the gateway in front of this service:
    ``X-Actor-Id`` and ``X-Actor-Role``.
    """
    id_header = 'HTTP_X_ACTOR_ID'
    role_header = 'HTTP_X_ACTOR_ROLE'

    def authenticate(self, request):
        raw_id = request.META.get(self.id_header)
        if not raw_id:
            return None

        role = request.META.get(self.role_header, '').strip().lower()
        if role not in ROLES:
            raise exceptions.AuthenticationFailed("Unknown actor role.")
        try:
            actor_id = uuid.UUID(raw_id.strip())
        except ValueError:
            raise exceptions.AuthenticationFailed("Invalid actor id.")
        return Actor(id=actor_id, role=role), None

    def authenticate_header(self, request):
        return 'X-Actor-Id'


class IsCustomer(permissions.BasePermission):
    message = "Customer authentication required."

    def has_permission(self, request, view):
        return isinstance(request.user, Actor) and request.user.is_customer


class IsOperator(permissions.BasePermission):
    message = "Operator role required."

    def has_permission(self, request, view):
        return isinstance(request.user, Actor) and request.user.is_operator


def require_operator(actor):
    if actor is None or not actor.is_operator:
        raise PermissionDenied("Operator role required.")


def require_customer(actor):
    if actor is None or not actor.is_customer:
        raise PermissionDenied("Customer authentication required.")


def require_access(actor, reservation):
    """Operators see every reservation; customers only their own."""
    if actor is None:
        raise PermissionDenied()
    if actor.is_operator:
        return
    if actor.is_customer and reservation.customer_id == actor.id:
        return
    raise PermissionDenied("You do not have permission to access this reservation.")


def actor_for_staff(user):
    """Operator identity for someone working through the Django admin."""
    return Actor(id=uuid.uuid5(uuid.NAMESPACE_URL, f"staff-user:{user.pk}"), role=ROLE_OPERATOR)
