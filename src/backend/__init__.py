"""
EchoFlow - multi-thread AI chat backend
=======================================

FastAPI backend with PostgreSQL persistence, real-time thread/message
subscriptions and an OpenAI Agents SDK assistant.

Key Features:
    - **Threads**: Per-user conversation threads ordered by last activity
    - **Messages**: Chronological message lists with edit, retry and truncation
    - **Real-time**: LISTEN/NOTIFY backed snapshots pushed over WebSockets
    - **Sharing**: Read-only public projection of threads marked public
    - **Enterprise Logging**: Structured JSON logs with rotation and request correlation

Modules:
    api: FastAPI routes, services, middleware and real-time subscriptions
    core: Configuration constants and system prompts
    models: Pydantic request/response schemas and error models
    utils: Logging, database, metrics and OpenAI client helpers
"""
