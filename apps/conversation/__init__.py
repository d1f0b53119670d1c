"""
ConvoFlow Conversation Package

Drives an ordered pipeline of AI agents through a fine-grained step
machine with optional human approval gates.

Modules:
    state              -- run state, per-agent state and action results
    context_assembler  -- builds the context visible to one agent
    prompt_builder     -- renders agent templates into completion requests
    step_machine       -- sub-step ordering rules
    retry              -- retry budget and completion timeout
    validation         -- agent configuration checks before a run
    controller         -- the pipeline controller tying all steps together
    events             -- state/history event publishing
    audit              -- committed-entry audit sinks
    schemas            -- HTTP request bodies
    routes             -- FastAPI router under /conversation
    container          -- DI registration for the gateway
"""
