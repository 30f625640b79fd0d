# Core module - config, logging, security, errors
from salesdash.core.config import settings
from salesdash.core.exceptions import DashboardError
