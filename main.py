import logging
import os
from typing import Optional

import functions_framework  # type: ignore
from flask import Flask

from web.app import create_app

LOGGER = logging.getLogger(__name__)

_app: Optional[Flask] = None


def get_app() -> Flask:
    """The REST app, created on first use."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


@functions_framework.http
def main(request):
    """HTTP Cloud Function.
    Args:
        request (flask.Request): The request object.
        <https://flask.palletsprojects.com/en/stable/api/#incoming-request-data>
    """
    app = get_app()
    with app.request_context(request.environ):
        return app.full_dispatch_request()


if __name__ == "__main__":

    logging.basicConfig(level=logging.INFO)

    port = int(os.environ.get("PORT", "8080"))
    LOGGER.info(f"Starting the news aggregator API on port {port}")
    get_app().run(host="0.0.0.0", port=port)
