"""AWS Lambda handler for the myFlix API."""

from typing import Any

from loguru import logger
from mangum import Mangum

from .api import app

# Mangum runs the app lifespan around each invocation, which builds the repository
handler = Mangum(app, lifespan="auto")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """AWS Lambda entry point.

    Args:
        event: Lambda event dictionary containing request information.
        context: Lambda context object with runtime information.

    Returns:
        Response dictionary with statusCode, headers, and body.
    """
    logger.info("Lambda request: {} {}", event.get("httpMethod"), event.get("path"))

    response = handler(event, context)

    logger.info("Lambda response status: {}", response.get("statusCode"))

    return response  # type: ignore[no-any-return]
