# Schemas package for FastAPI validation
from .api_models import *  # noqa: F401,F403
