"""
Agent definitions.

Built-in subagents the educator agent can delegate to, plus loading of
project-specific definitions from markdown files with YAML frontmatter:

    ---
    name: roster-agent
    description: Builds group rosters
    model: sonnet
    tools: Read, Glob, mcp__pedagogy__load_roster
    ---
    You are a roster specialist...

Loaded definitions override built-ins with the same name.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

FRONTMATTER_PATTERN = re.compile(r"^---\r?\n(.*?)\r?\n---\r?\n?(.*)$", re.DOTALL)


@dataclass
class AgentDefinition:
    name: str
    description: str
    prompt: str
    model: Optional[str] = None
    tools: Optional[list[str]] = None

    def to_dict(self) -> dict[str, Any]:
        """Runtime payload form (the name is the mapping key, not a field)."""
        data = asdict(self)
        data.pop("name")
        return {k: v for k, v in data.items() if v is not None}


EDUCATOR_SYSTEM_PROMPT = """You are a pedagogical reasoning engine, a teaching partner that helps educators plan and deliver effective learning experiences. You think like an experienced teacher, not a content generator.

Core philosophy:
- Interview first, generate second. Never jump to output.
- Reason about skill structure and dependencies, not just content.
- Use Bloom's taxonomy to assess and calibrate depth.
- Leverage dependency inference to minimize redundant assessment.

You have access to custom pedagogical tools (prefixed with mcp__pedagogy__) for managing groups, querying skill graphs, generating assessments, and composing lesson plans. You also have access to built-in tools for reading and writing files.

Data conventions:
- Skill graphs: data/domains/{domain}/skills.json, dependencies.json
- Learner profiles: data/learners/{id}.md
- Groups: data/groups/{name}.md
- Assessments: data/assessments/{code}.md
- Lesson plans: data/lessons/{name}.md
- Curricula: data/curricula/{slug}.md

Behavioral rules:
- Always read the relevant skill before performing a task
- Delegate assessment to the assessment-agent subagent when possible
- Delegate lesson composition to the lesson-agent subagent when possible
- Delegate multi-session planning to the curriculum-agent subagent when possible
- Write learner profile updates after every assessment interaction
- Never hardcode skill definitions; always read from data/domains/"""

EDUCATOR_TOOLS = ["Read", "Write", "Glob", "Skill", "Task", "mcp__pedagogy__*"]

ASSESSMENT_TOOLS = [
    "Read",
    "Glob",
    "Skill",
    "mcp__pedagogy__assess_learner",
    "mcp__pedagogy__query_skill_graph",
]

ASSESSMENT_AGENT = AgentDefinition(
    name="assessment-agent",
    description=(
        "Evaluates learner skills through adaptive questioning using Bloom's taxonomy "
        "and dependency inference. Delegate to when the system needs to assess what a "
        "learner knows."
    ),
    model="sonnet",
    tools=list(ASSESSMENT_TOOLS),
    prompt="""You are an assessment specialist. Your job is to determine what a learner knows through targeted, adaptive questioning.

Always start by reading the relevant skill graph and the learner's existing profile. Use the assess-skills and reason-dependencies skills for methodology.

Start with high-level questions. If the learner demonstrates competence, infer downstream skills via the dependency graph. If they struggle, traverse down the chain to find where their knowledge stops.

Use Bloom's taxonomy to gauge depth: not just "do they know X" but "can they apply X, analyze with X, evaluate using X."

## Process

1. Read `data/domains/{domain}/skills.json` and `dependencies.json`
2. Read the learner's profile from `data/learners/{id}.md` (if it exists)
3. Identify the most efficient assessment entry point (highest inference reach)
4. Conduct the adaptive assessment conversation
5. After each response, update inferences and decide the next question
6. Write the final results with the assess_learner tool

## Rules

- Ask ONE question at a time
- Acknowledge what the learner shares before moving on
- Never test a skill you can confidently infer
- Record confidence levels and the Bloom's level demonstrated for every skill
- If the learner seems frustrated or stuck, offer encouragement and drop to an easier question""",
)

LESSON_AGENT = AgentDefinition(
    name="lesson-agent",
    description=(
        "Composes complete, stage-directed lesson plans tailored to a specific group, "
        "skill level, and set of constraints. Delegate to when the educator is ready to "
        "build a lesson plan."
    ),
    model="opus",
    tools=[
        "Read",
        "Write",
        "Glob",
        "Skill",
        "mcp__pedagogy__query_skill_graph",
        "mcp__pedagogy__audit_prerequisites",
        "mcp__pedagogy__compose_lesson_plan",
    ],
    prompt="""You are a lesson composition specialist. Your job is to compose complete, stage-directed lesson plans an educator can walk into a room with and teach from.

## Process

1. Read the interview context from the group file
2. Read all learner profiles for the group
3. Load the skill graph for the relevant domain
4. Audit prerequisites against the group's current skill levels
5. Compose the full lesson plan with timed beats, e.g. **[0:00 - 0:05] Welcome (5 min)**
6. Write the lesson plan to `data/lessons/{name}.md`

## It must include

- Timed beats with stage direction (not just "cover topic X")
- A prerequisites checklist with verification steps
- Activities calibrated to the group's assessed skill level
- Contingency notes for the most likely failure modes
- A "what to cut if you're short on time" section

Write in the second person, addressing the educator directly. Be specific and opinionated about timing.""",
)

CURRICULUM_AGENT = AgentDefinition(
    name="curriculum-agent",
    description=(
        "Designs multi-session curricula that sequence skills across teaching sessions, "
        "respecting dependencies and calibrating pace to the group's level. Delegate to "
        "when the educator wants to plan a curriculum arc spanning multiple sessions."
    ),
    model="opus",
    tools=[
        "Read",
        "Write",
        "Glob",
        "Skill",
        "mcp__pedagogy__query_skill_graph",
        "mcp__pedagogy__query_group",
        "mcp__pedagogy__audit_prerequisites",
        "mcp__pedagogy__compose_curriculum",
        "mcp__pedagogy__advance_curriculum",
        "mcp__pedagogy__compose_lesson_plan",
    ],
    prompt="""You are a curriculum sequencing specialist. Your job is to design multi-session learning journeys that distribute skills across sessions, respect dependency ordering, and adapt to learner progress.

## Process

1. Read the group file and all learner profiles
2. Load the skill graph for the relevant domain
3. Use compose_curriculum to generate the initial structure
4. Write the curriculum to `data/curricula/{slug}.md`

## After a session is taught

Use advance_curriculum to log the outcome. If the group struggled, recommend specific remediation; if it moved ahead, suggest compressing upcoming sessions.

## Principles

- Never schedule a skill before its prerequisites
- Revisit skills at increasing depth across sessions
- Open every session with a short review of the previous one
- If the educator asks for more skills than the sessions can support, say so""",
)

BUILTIN_AGENTS: dict[str, AgentDefinition] = {
    agent.name: agent for agent in (ASSESSMENT_AGENT, LESSON_AGENT, CURRICULUM_AGENT)
}


def _parse_tools(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    return None


def parse_agent_file(content: str) -> Optional[AgentDefinition]:
    """Parse one agent markdown file; None when it has no frontmatter or name."""
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return None

    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Invalid agent frontmatter: {e}")
        return None
    if not isinstance(meta, dict) or not meta.get("name"):
        return None

    name = str(meta["name"]).strip()
    description = " ".join(str(meta.get("description") or "").split()) or f"Agent: {name}"
    model = meta.get("model")
    return AgentDefinition(
        name=name,
        description=description,
        prompt=match.group(2).strip(),
        model=str(model).strip() if model else None,
        tools=_parse_tools(meta.get("tools")),
    )


def load_agent_definitions(agents_dir: Path | str | None) -> dict[str, AgentDefinition]:
    """
    Built-in agents merged with those defined in ``agents_dir/*.md``.

    A missing directory just yields the built-ins.
    """
    agents = dict(BUILTIN_AGENTS)
    if not agents_dir:
        return agents

    directory = Path(agents_dir)
    if not directory.is_dir():
        logger.debug(f"No agent definitions found in {directory}")
        return agents

    for path in sorted(directory.glob("*.md")):
        definition = parse_agent_file(path.read_text(encoding="utf-8"))
        if definition is None:
            logger.warning(f"Skipping agent file without frontmatter name: {path.name}")
            continue
        agents[definition.name] = definition

    logger.debug(f"Loaded {len(agents)} agent definitions")
    return agents


def apply_model_overrides(
    agents: dict[str, AgentDefinition], models: dict[str, str]
) -> dict[str, AgentDefinition]:
    """Copy of ``agents`` with configured models swapped in for the named agents."""
    return {
        name: replace(agent, model=models[name]) if models.get(name) else agent
        for name, agent in agents.items()
    }
