"""
tts-proxy HTTP Layer.

    - routes.py: /api endpoints plus /health and /metrics
    - schemas.py: Pydantic request/response models
    - dependencies.py: app.state providers for Depends()
    - errors.py: exception handlers rendering the error envelope
    - middleware.py: request id and access logging
"""
