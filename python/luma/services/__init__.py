"""Business logic services.

Services are called by route handlers and orchestrate database operations.
Synchronous services take the database session as their first argument;
the composer, session rewrite and transcription flows are async because they
make outbound provider calls.
"""
