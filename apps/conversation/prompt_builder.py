"""
Prompt instantiation for conversation agents.

Renders an agent's configuration plus its assembled context into an
``LLMRequest``. The final prompt is made of these sections, in order:

    ## Role: <title>          role description, category and expertise
    ## User Input             when the agent selects the raw user input
    ## Previous Agent Outputs one ### block per completed upstream agent
    ## Conversation History   finalized responses, truncated
    ## Task                   the template with placeholders substituted
    ## Instructions           agent + output format + category bullets
    ## Examples               strategist / researcher / designer only

Supported placeholders::

    {USER_INPUT} {AGENT_NAME} {ROLE_TITLE} {ROLE_CATEGORY}
    {STEP_NUMBER} {TOTAL_STEPS} {AGENT_<id>_RESPONSE} {AGENT_<id>_OUTPUT}
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from convolib.exceptions import TemplateValidationError
from convolib.types import AgentConfiguration, LLMRequest, OutputFormat, RoleCategory

from .context_assembler import PromptContext

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI agent designed to help create comprehensive technical specifications.\n"
    "Please provide detailed, well-structured responses that are actionable and specific "
    "to the given context."
)

HISTORY_TRUNCATE_CHARS = 200

# Identifiers in braces starting with an uppercase letter are placeholders; other brace content
# (for example a JSON sample in the template) is literal text.
PLACEHOLDER_RE = re.compile(r"\{([A-Z][A-Za-z0-9_]*)\}")
AGENT_PLACEHOLDER_RE = re.compile(r"^AGENT_(.+)_(RESPONSE|OUTPUT)$")
SIMPLE_PLACEHOLDERS = ("USER_INPUT", "AGENT_NAME", "ROLE_TITLE", "ROLE_CATEGORY", "STEP_NUMBER", "TOTAL_STEPS")

CATEGORY_EXPERTISE: Dict[RoleCategory, str] = {
    RoleCategory.STRATEGIST: "Market analysis, competitive positioning, business strategy, value proposition development",
    RoleCategory.RESEARCHER: "Market research, user behavior analysis, competitive intelligence, data gathering",
    RoleCategory.DESIGNER: "User experience design, interface design, visual design, interaction patterns",
    RoleCategory.AUTHOR: "Technical writing, documentation, content creation, specification development",
    RoleCategory.ANALYST: "Data analysis, metrics interpretation, performance evaluation, insights generation",
    RoleCategory.ARCHITECT: "System architecture, technical design, infrastructure planning, scalability considerations",
}
DEFAULT_EXPERTISE = "General AI assistance and problem solving"

FORMAT_INSTRUCTIONS: Dict[OutputFormat, List[str]] = {
    OutputFormat.JSON: [
        "Provide your response in valid JSON format",
        "Use clear, descriptive keys for JSON properties",
    ],
    OutputFormat.MARKDOWN: [
        "Format your response using Markdown",
        "Use headers, lists, and emphasis appropriately",
    ],
    OutputFormat.TEXT: [
        "Provide a clear, well-structured text response",
        "Use paragraphs and formatting for readability",
    ],
}

CATEGORY_INSTRUCTIONS: Dict[RoleCategory, List[str]] = {
    RoleCategory.STRATEGIST: [
        "Focus on business value and market opportunity",
        "Consider competitive landscape and differentiation",
        "Provide actionable strategic recommendations",
    ],
    RoleCategory.RESEARCHER: [
        "Base recommendations on data and evidence",
        "Consider multiple perspectives and sources",
        "Identify key insights and patterns",
    ],
    RoleCategory.DESIGNER: [
        "Prioritize user experience and usability",
        "Consider accessibility and inclusivity",
        "Focus on visual and interaction design principles",
    ],
    RoleCategory.AUTHOR: [
        "Write clear, concise, and well-structured content",
        "Use appropriate technical terminology",
        "Ensure completeness and accuracy",
    ],
    RoleCategory.ANALYST: [
        "Provide data-driven insights and recommendations",
        "Consider quantitative and qualitative factors",
        "Focus on measurable outcomes and metrics",
    ],
    RoleCategory.ARCHITECT: [
        "Consider scalability, performance, and maintainability",
        "Address technical constraints and requirements",
        "Provide clear architectural decisions and rationale",
    ],
}

CATEGORY_EXAMPLES: Dict[RoleCategory, str] = {
    RoleCategory.STRATEGIST: (
        "Example Strategy Response:\n"
        "- Market Opportunity: $2.5B addressable market\n"
        "- Target Audience: Tech-savvy professionals aged 25-40\n"
        "- Value Proposition: Streamlined workflow automation\n"
        "- Competitive Advantage: AI-powered insights"
    ),
    RoleCategory.RESEARCHER: (
        "Example Research Response:\n"
        "- Key Findings: 78% of users report inefficiencies\n"
        "- Competitive Analysis: 3 major competitors identified\n"
        "- Recommendations: Focus on intuitive UX design"
    ),
    RoleCategory.DESIGNER: (
        "Example Design Response:\n"
        "- Design Principles: Simplicity, efficiency, accessibility\n"
        "- Key Features: Dashboard, wizard interface, progress tracking\n"
        "- Visual Design: Professional color palette, clean typography"
    ),
}


@dataclass
class TemplateValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def missing_response_placeholder(agent_id: Any) -> str:
    return f"[No response available from Agent {agent_id}]"


def estimate_token_count(text: str) -> int:
    """Rough estimation: 4 characters per token. Advisory only."""
    return math.ceil(len(text) / 4)


def _braces_balanced(template: str) -> bool:
    depth = 0
    for ch in template:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def validate_prompt_template(template: str) -> TemplateValidationResult:
    """
    Check a prompt template for the problems that would make rendering unsafe.

    Every problem is reported; validation does not stop at the first one.
    """
    errors: List[str] = []

    if "{USER_INPUT}" not in template:
        errors.append("Template must include {USER_INPUT} placeholder")

    if not _braces_balanced(template):
        errors.append("Template has unbalanced braces")

    for match in PLACEHOLDER_RE.finditer(template):
        name = match.group(1)
        if name in SIMPLE_PLACEHOLDERS:
            continue
        agent_match = AGENT_PLACEHOLDER_RE.match(name)
        if agent_match:
            if not agent_match.group(1).isdigit():
                errors.append(f"Invalid agent response placeholder: {match.group(0)}")
            continue
        errors.append(f"Unknown placeholder: {match.group(0)}")

    return TemplateValidationResult(valid=not errors, errors=errors)


class PromptBuilder:
    """Builds completion requests from agent configurations."""

    def build_prompt(self, agent: AgentConfiguration, context: PromptContext) -> LLMRequest:
        """
        Render the full prompt for one agent.

        Raises:
            TemplateValidationError: When the agent's template is invalid.
        """
        validation = validate_prompt_template(agent.task.prompt_template)
        if not validation.valid:
            logger.warning(f"Rejected prompt template for agent {agent.id} ({agent.name}): {validation.errors}")
            raise TemplateValidationError(validation.errors, agent_name=agent.name)

        sections = [
            self._role_section(agent),
            self._context_section(agent, context),
            self._task_section(agent, context),
        ]

        instructions = self._instructions(agent)
        if instructions:
            sections.append("## Instructions\n" + "\n".join(f"- {i}" for i in instructions))

        example = CATEGORY_EXAMPLES.get(agent.role.category)
        if example:
            sections.append(f"## Examples\n{example}")

        prompt = "\n\n".join(s for s in sections if s)
        return LLMRequest(
            prompt=prompt,
            max_tokens=agent.task.max_tokens,
            temperature=agent.task.temperature,
            output_format=agent.task.output_format,
            instructions=list(agent.task.instructions),
            system_prompt=self.build_system_prompt(agent),
        )

    def build_system_prompt(self, agent: AgentConfiguration) -> str:
        return (
            f"{DEFAULT_SYSTEM_PROMPT}\n\n"
            f"You are acting as: {agent.role.title}\n"
            f"Your role category is: {agent.role.category.value}\n"
            f"Your expertise includes: {self.expertise_for(agent.role.category)}\n\n"
            "Please maintain consistency with your role and provide responses that align "
            "with your specialized expertise."
        )

    def create_prompt_summary(self, agent: AgentConfiguration, context: PromptContext) -> Dict[str, Any]:
        request = self.build_prompt(agent, context)
        return {
            "agent_name": agent.name,
            "role": agent.role.title,
            "context_sources": [s.label for s in agent.selected_sources()],
            "estimated_tokens": estimate_token_count(request.prompt),
            "output_format": agent.task.output_format.value,
        }

    @staticmethod
    def expertise_for(category: RoleCategory) -> str:
        return CATEGORY_EXPERTISE.get(category, DEFAULT_EXPERTISE)

    def _role_section(self, agent: AgentConfiguration) -> str:
        return (
            f"## Role: {agent.role.title}\n\n"
            f"{agent.role.description}\n\n"
            f"**Category**: {agent.role.category.value}\n"
            f"**Expertise**: {self.expertise_for(agent.role.category)}"
        )

    def _context_section(self, agent: AgentConfiguration, context: PromptContext) -> str:
        parts: List[str] = []

        if agent.uses_user_input():
            parts.append(f"## User Input\n{context.user_input}")

        upstream_blocks = []
        for agent_id in agent.upstream_agent_ids():
            response = context.response_for(agent_id)
            if response:
                upstream_blocks.append(f"### {context.name_for(agent_id)}\n{response}")
        if upstream_blocks:
            parts.append("## Previous Agent Outputs")
            parts.extend(upstream_blocks)

        if context.conversation_history:
            entries = []
            for entry in context.conversation_history:
                response = entry.response[:HISTORY_TRUNCATE_CHARS]
                if len(entry.response) > HISTORY_TRUNCATE_CHARS:
                    response += "..."
                entries.append(f"**{entry.agent_name}** ({entry.timestamp}):\n{response}")
            parts.append("## Conversation History\n" + "\n\n".join(entries))

        return "\n\n".join(parts)

    def _task_section(self, agent: AgentConfiguration, context: PromptContext) -> str:
        values = {
            "USER_INPUT": context.user_input,
            "AGENT_NAME": agent.name,
            "ROLE_TITLE": agent.role.title,
            "ROLE_CATEGORY": agent.role.category.value,
            "STEP_NUMBER": str(context.metadata.step_number),
            "TOTAL_STEPS": str(context.metadata.total_agents),
        }

        # Single pass, so substituted text is never scanned for placeholders again
        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name in values:
                return values[name]
            agent_match = AGENT_PLACEHOLDER_RE.match(name)
            agent_id = int(agent_match.group(1))
            response = context.response_for(agent_id)
            if not response:
                logger.warning(f"Agent {agent.id} references agent {agent_id} which has no completed response")
                return missing_response_placeholder(agent_id)
            return response

        return "## Task\n" + PLACEHOLDER_RE.sub(substitute, agent.task.prompt_template)

    def _instructions(self, agent: AgentConfiguration) -> List[str]:
        instructions = list(agent.task.instructions)
        instructions.extend(FORMAT_INSTRUCTIONS[agent.task.output_format])
        instructions.extend(CATEGORY_INSTRUCTIONS.get(agent.role.category, []))
        return instructions
