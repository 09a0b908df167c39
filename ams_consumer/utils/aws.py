"""AWS service clients and utilities."""

import os

import boto3
from botocore.config import Config

from ams_consumer.config import Settings
from ams_consumer.utils.logging import get_logger

logger = get_logger(__name__)

# Check if running in local development mode
IS_LOCAL_DEV = os.getenv("IS_LOCAL_DEV", "false").lower() == "true"


def get_boto3_config() -> Config:
    """Get boto3 configuration with retries and timeouts."""
    return Config(
        retries={
            "max_attempts": 3,
            "mode": "adaptive",
        },
        connect_timeout=5,
        # Must outlast SQS long polling
        read_timeout=30,
    )


def get_sqs_client(settings: Settings):
    """
    Create an SQS client.

    Credentials come from the default boto3 chain (env, profile, IAM role).
    With IS_LOCAL_DEV set, AWS_ENDPOINT_URL_SQS may point at a local emulator.

    Args:
        settings: Worker settings

    Returns:
        boto3 SQS client
    """
    session = boto3.Session(region_name=settings.aws_region)
    client_kwargs = {
        "service_name": "sqs",
        "region_name": settings.aws_region,
        "config": get_boto3_config(),
    }
    if IS_LOCAL_DEV and os.getenv("AWS_ENDPOINT_URL_SQS"):
        client_kwargs["endpoint_url"] = os.environ["AWS_ENDPOINT_URL_SQS"]

    try:
        client = session.client(**client_kwargs)
        logger.debug("SQS client created successfully")
    except Exception as e:
        logger.error(f"Error creating SQS client: {e}", exc_info=True)
        raise
    return client
