"""AWS Lambda handler for the AMS SQS consumer."""

from ams_consumer.config import get_settings
from ams_consumer.utils.logging import setup_logging, get_logger
from ams_consumer.workers.lambda_adapter import build_lambda_handler

# Missing SUPABASE_INGEST_URL / SUPABASE_INGEST_SECRET fails the cold start here
settings = get_settings()
setup_logging(settings)
logger = get_logger(__name__)

handler = build_lambda_handler(settings)
