# Middleware package init
"""
Cactux Topo Backend — Middleware Package
==========================================

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: reject floods of image saves before decoding anything
    2. Request ID: correlation id for every log line of the request
    3. Logging: access log with status and duration
"""
