"""
Vercel Serverless Function Entry Point for the ReRide API
"""
import os
import sys

# Add project root to Python path
project_root = os.path.join(os.path.dirname(__file__), '..')
sys.path.insert(0, project_root)

from mangum import Mangum
from src.config import get_api_config
from src.logging_config import configure_logging
from src.marketplace.server import app

# Lifespan events don't run in serverless, so they are disabled
# and logging is configured here instead.
configure_logging(get_api_config())

# Every /api/* request lands here; PathDispatchMiddleware recovers the
# logical route from the forwarding headers.
handler = Mangum(app, lifespan="off")


def handler_func(event, context):
    """Vercel serverless function handler"""
    return handler(event, context)
