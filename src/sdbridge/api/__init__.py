"""sdbridge FastAPI front door.

This package contains the FastAPI application, Pydantic request models, and
the Markdown rendering used by the JSON-RPC endpoint.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request validation.
formatting
    Markdown rendering of text-to-image results.
"""
