"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import instance  # noqa: F401
from . import model  # noqa: F401
from . import team  # noqa: F401
from . import team_member_association  # noqa: F401
from . import user  # noqa: F401
from . import virtual_key  # noqa: F401
