"""
Translation service client

Components:
    - base: request/response records and translation outcomes
    - retry_policy: backoff calculation and retry state machine
    - client: HTTP client with the per-unit retry loop
"""
