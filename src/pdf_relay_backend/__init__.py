"""
PDF Relay Backend - REST API that relays uploaded PDFs to a workflow engine

This package provides a FastAPI-based web service that sits in front of a
downstream workflow-automation webhook (such as n8n). It enables:

- Single-file and batch PDF uploads with type and size validation
- Short-lived staging of uploads on local disk
- Relaying staged files plus metadata in one multipart call per request
- Periodic eviction of stale staged files
- Health and staging statistics endpoints

Key Components:
    - main: FastAPI application factory and HTTP endpoint definitions
    - relay_service: Upload-to-relay orchestration with guaranteed cleanup
    - relay_client: Outbound multipart client for the downstream webhook
    - staging: Staging directory management
    - sweeper: Background eviction of stale staged files
    - configuration: Config loading from defaults, YAML and environment
    - models: Pydantic response models
    - errors: Error types mapped to HTTP responses

Usage:
    Run the API server with:
        pdf-relay

    Or through uvicorn directly:
        uvicorn pdf_relay_backend.main:build_app --factory --port 3000
"""
