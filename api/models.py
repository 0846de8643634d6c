# Models live in the per-feature sub-packages; importing them here registers
# them with the ``api`` app.
from api.branch.models import Branch  # noqa: F401
from api.garage.models import Car  # noqa: F401
from api.customer.models import Customer  # noqa: F401
from api.booking.models import Reservation, ReservationEvent  # noqa: F401
