"""
ConvoFlow shared library.

Modules:
    config         -- environment-driven settings (pydantic + python-dotenv)
    types          -- agent descriptor and completion request/response models
    exceptions     -- exception hierarchy shared by the orchestrator and backends
    llm_provider   -- completion backends (LangChain ChatOpenAI, mock) and factory
    observability  -- in-memory log capture for the log viewer
    di             -- tiny service container used by the app containers
    utils          -- timestamp helper
"""
