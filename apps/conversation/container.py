from convolib.config import settings
from convolib.di import container
from convolib.llm_provider import build_provider

from .audit import build_audit_sink
from .controller import ConversationController
from .events import ConversationEventPublisher
from .prompt_builder import PromptBuilder
from .state import ConversationOptions

_options = ConversationOptions.from_settings(settings.conversation)
_provider = build_provider(settings.llm, timeout=_options.timeout_seconds)
_events = ConversationEventPublisher()
_builder = PromptBuilder()
_audit = build_audit_sink(settings.conversation.audit_dir)

# HTTP actions return immediately; processing continues as a background task
_controller = ConversationController(
    provider=_provider,
    options=_options,
    prompt_builder=_builder,
    audit_sink=_audit,
    events=_events,
    background=True,
)

container.register('conversation.controller', lambda: _controller)
container.register('conversation.provider', lambda: _provider)
container.register('conversation.events', lambda: _events)
container.register('conversation.prompt_builder', lambda: _builder)
container.register('conversation.audit', lambda: _audit)
