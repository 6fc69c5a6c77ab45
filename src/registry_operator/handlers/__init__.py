"""Handler modules for the Config resource and the objects it owns."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import config  # noqa: F401
from . import owned  # noqa: F401
