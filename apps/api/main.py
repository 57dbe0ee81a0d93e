"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the luma package.
Run with: uvicorn main:app --reload

The app instance is created here (not in luma.app) so that importing
create_app does not require DATABASE_URL to be configured.
"""

from luma.app import add_request_id_middleware, create_app

app = create_app()
# Add request-id middleware LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]
