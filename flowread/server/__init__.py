"""HTTP API for FlowRead (FastAPI).

WHY: The browser reader talks to FlowRead over HTTP. This package holds
the FastAPI app and its request/response schemas; all behaviour lives in
flowread.library.
"""
