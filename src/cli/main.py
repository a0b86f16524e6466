"""
Typer CLI for the pedagogy engine.

Commands:
    pedagogy serve                  - Run the API server
    pedagogy graph show             - Skills and edges of a domain
    pedagogy graph prereqs          - Transitive prerequisites of a skill
    pedagogy graph infer            - Infer prerequisites from demonstrated skills
    pedagogy graph validate         - Check a domain graph for structural problems
    pedagogy graph create           - Create a domain graph from a JSON file
    pedagogy graph update           - Apply skill and edge edits to a domain
    pedagogy graph wisdom           - Accumulated teaching notes and patterns
    pedagogy lesson list            - List lesson plans
    pedagogy lesson show            - Timed sections of one lesson plan
    pedagogy lesson debrief         - Process a post-session debrief
    pedagogy roster create          - Create a group and its learner profiles
    pedagogy group summary          - Skill distribution and gaps across a group
    pedagogy group audit            - Prerequisite audit for target skills
    pedagogy assess record          - Record assessed skills for a learner
    pedagogy portal code            - Generate a learner portal code
    pedagogy portal view            - Render a learner's portal view
    pedagogy curriculum compose     - Sequence skills across sessions
    pedagogy curriculum advance     - Log a taught session and get adjustments
    pedagogy educator list          - List educator profiles
    pedagogy educator show          - Styles, strengths and domains of an educator

Usage:
    pedagogy --help
    pedagogy graph infer python-basics --skill write-functions:0.9
    pedagogy roster create "Tuesday Cohort" --domain python-basics -m "Ana Silva" -m "Ben Okafor"
    pedagogy curriculum compose "Intro Arc" --domain python-basics --group tuesday-cohort -n 4
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.core.errors import GraphValidationError, PedagogyError
from src.core.logging import configure_logging

app = typer.Typer(
    help="Pedagogy engine: skill graphs, learner profiles, lessons and curricula",
    no_args_is_help=True,
)

console = Console()

DataDirOption = typer.Option(None, "--data-dir", help="Data directory (defaults to settings)")


@app.callback()
def main_callback() -> None:
    """Plan, deliver and assess lessons from the terminal."""
    configure_logging(get_settings())


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except PedagogyError as e:
        rprint(f"[bold red]Error:[/bold red] {e}")
        if isinstance(e, GraphValidationError):
            for item in e.details.get("errors", []):
                rprint(f"  [red]✗[/red] {item if isinstance(item, str) else item.get('msg', item)}")
        raise typer.Exit(code=1)


def _data_dir(data_dir: Optional[Path]) -> Path:
    return data_dir or get_settings().data_path


def _read_json_file(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Cannot read {path}: {e}")
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object")
    return data


def _parse_confidence(value: str, default: float = 1.0) -> float:
    try:
        confidence = float(value) if value else default
    except ValueError:
        raise typer.BadParameter(f"Invalid confidence: {value!r}")
    if not 0 <= confidence <= 1:
        raise typer.BadParameter(f"Confidence must be between 0 and 1: {value}")
    return confidence


# ========================================
# SERVER
# ========================================


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP/WebSocket API with uvicorn."""
    import uvicorn

    settings = get_settings()
    rprint(f"\n[bold cyan]Pedagogy engine[/bold cyan] on {host or settings.api_host}:{port or settings.api_port}")
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# ========================================
# GRAPH COMMANDS
# ========================================

graph_app = typer.Typer(help="Skill graph queries and validation")
app.add_typer(graph_app, name="graph")


@graph_app.command("show")
def graph_show(
    domain: str = typer.Argument(..., help="Domain name"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """List the skills of a domain with their prerequisites."""
    from src.store.domains import load_graph

    with _handle_errors():
        graph = load_graph(_data_dir(data_dir), domain)

    table = Table(title=f"{domain}: {len(graph.skills)} skills, {len(graph.edges)} edges")
    table.add_column("Skill", style="cyan")
    table.add_column("Label")
    table.add_column("Bloom", style="magenta")
    table.add_column("Prerequisites", style="dim")
    for skill in graph.skills:
        prereqs = ", ".join(f"{e.source} ({e.confidence:g})" for e in graph.prerequisite_edges(skill.id))
        table.add_row(skill.id, skill.label, skill.bloom_level, prereqs or "-")
    console.print(table)


@graph_app.command("prereqs")
def graph_prereqs(
    domain: str = typer.Argument(..., help="Domain name"),
    skill_id: str = typer.Argument(..., help="Skill to trace"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Show every transitive prerequisite of a skill."""
    from src.graph.inference import find_prerequisites
    from src.store.domains import load_graph

    with _handle_errors():
        graph = load_graph(_data_dir(data_dir), domain)
    if not graph.has_skill(skill_id):
        rprint(f"[bold red]Error:[/bold red] Skill '{skill_id}' not found in '{domain}'")
        raise typer.Exit(code=1)

    hits = find_prerequisites(graph, skill_id)
    table = Table(title=f"Prerequisites of {graph.label_for(skill_id)}")
    table.add_column("Depth", justify="right")
    table.add_column("Skill", style="cyan")
    table.add_column("Edge confidence", justify="right", style="green")
    for hit in hits:
        table.add_row(str(hit.depth), graph.label_for(hit.id), f"{hit.confidence:.2f}")
    console.print(table)


@graph_app.command("infer")
def graph_infer(
    domain: str = typer.Argument(..., help="Domain name"),
    skills: List[str] = typer.Option(
        ..., "--skill", "-s", help="Demonstrated skill as id or id:confidence (repeatable)"
    ),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum prerequisite hops"),
    min_confidence: Optional[float] = typer.Option(None, "--min-confidence", help="Drop weaker inferences"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """
    Infer prerequisite confidences from demonstrated skills.

    Examples:
        pedagogy graph infer python-basics -s write-functions
        pedagogy graph infer python-basics -s write-functions:0.8 -s use-loops:0.9
    """
    from src.graph.inference import run_dependency_inference
    from src.store.domains import load_graph

    demonstrated = []
    for item in skills:
        skill_id, _, conf = item.partition(":")
        demonstrated.append((skill_id, _parse_confidence(conf)))

    config = get_settings().get_inference_config()
    with _handle_errors():
        graph = load_graph(_data_dir(data_dir), domain)
    unknown = [s for s, _ in demonstrated if not graph.has_skill(s)]
    if unknown:
        rprint(f"[bold red]Error:[/bold red] Unknown skills: {', '.join(unknown)}")
        raise typer.Exit(code=1)

    inferred = run_dependency_inference(
        graph,
        demonstrated,
        max_depth=max_depth if max_depth is not None else config["max_depth"],
        min_confidence=min_confidence if min_confidence is not None else config["min_confidence"],
    )

    table = Table(title=f"Inferred from {', '.join(s for s, _ in demonstrated)}")
    table.add_column("Skill", style="cyan")
    table.add_column("Label")
    table.add_column("Confidence", justify="right", style="green")
    for entry in inferred:
        table.add_row(entry.skill_id, graph.label_for(entry.skill_id), f"{entry.confidence:.2f}")
    console.print(table)
    rprint(f"\n[dim]{len(inferred)} skills inferred[/dim]")


@graph_app.command("validate")
def graph_validate(
    domain: str = typer.Argument(..., help="Domain name"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Check for cycles, dangling edges, orphans and Bloom's regressions."""
    from src.graph.analysis import validate_graph
    from src.store.domains import load_graph

    with _handle_errors():
        graph = load_graph(_data_dir(data_dir), domain)
    report = validate_graph(graph)

    for error in report.errors:
        rprint(f"  [red]✗[/red] {error}")
    for warning in report.warnings:
        rprint(f"  [yellow]⚠[/yellow] {warning}")

    if report.valid:
        rprint(f"\n[bold green]✓ {domain} is valid[/bold green] ({len(report.warnings)} warnings)")
    else:
        rprint(f"\n[bold red]✗ {domain} has {len(report.errors)} errors[/bold red]")
        raise typer.Exit(code=1)


@graph_app.command("create")
def graph_create(
    domain: str = typer.Argument(..., help="Domain name (kebab-case)"),
    source: Path = typer.Argument(..., help='JSON file with "skills" and "edges" (and optionally "description")'),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Overrides the file's description"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing domain"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Create a domain graph from a JSON file; nothing is written if it has errors."""
    from src.graph.authoring import create_domain

    data = _read_json_file(source)
    with _handle_errors():
        result = create_domain(
            _data_dir(data_dir),
            domain,
            data.get("skills", []),
            data.get("edges", []),
            description=description if description is not None else data.get("description", ""),
            overwrite=overwrite,
        )

    for warning in result.warnings:
        rprint(f"  [yellow]⚠[/yellow] {warning}")
    stats = result.stats
    rprint(
        f"\n[bold green]✓ Created {domain}[/bold green]: "
        f"{stats['totalSkills']} skills, {stats['totalEdges']} edges"
    )
    rprint(f"[dim]Roots: {', '.join(stats['rootSkills'])}[/dim]")


@graph_app.command("update")
def graph_update(
    domain: str = typer.Argument(..., help="Domain name"),
    source: Path = typer.Argument(
        ..., help="JSON file with any of addSkills, removeSkills, modifySkills, addEdges, removeEdges"
    ),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Apply skill and edge edits to a domain graph."""
    from src.graph.authoring import update_domain

    data = _read_json_file(source)
    with _handle_errors():
        result = update_domain(
            _data_dir(data_dir),
            domain,
            add_skills=data.get("addSkills", []),
            remove_skills=data.get("removeSkills", []),
            modify_skills=data.get("modifySkills", []),
            add_edges=data.get("addEdges", []),
            remove_edges=data.get("removeEdges", []),
        )

    for warning in result.warnings:
        rprint(f"  [yellow]⚠[/yellow] {warning}")
    rprint(f"\n[bold green]✓ {domain} updated[/bold green]: {result.change_description}")
    rprint(f"[dim]{result.stats['totalSkills']} skills, {result.stats['totalEdges']} edges[/dim]")


@graph_app.command("wisdom")
def graph_wisdom(
    domain: str = typer.Argument(..., help="Domain name"),
    skills: Optional[List[str]] = typer.Option(None, "--skill", "-s", help="Only notes for these skills"),
    note_types: Optional[List[str]] = typer.Option(None, "--type", "-t", help="Only these note types"),
    min_confidence: float = typer.Option(0.0, "--min-confidence", help="Drop less confident notes"),
    group_level: Optional[str] = typer.Option(None, "--group-level", help="Only notes for this group level"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Show accumulated teaching notes and patterns for a domain."""
    from src.store.teaching_notes import query_teaching_wisdom

    with _handle_errors():
        wisdom = query_teaching_wisdom(
            _data_dir(data_dir),
            domain,
            skill_ids=skills,
            note_types=note_types,
            min_confidence=min_confidence,
            group_level=group_level,
        )
    if not wisdom["found"]:
        rprint(f"[yellow]{wisdom['message']}[/yellow]")
        return

    table = Table(title=f"Teaching wisdom: {domain}")
    table.add_column("Skill", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Observation")
    table.add_column("Confidence", justify="right", style="green")
    for note in wisdom["notes"]:
        table.add_row(note["skillId"], note["type"], note["observation"], f"{note['confidence']:.2f}")
    console.print(table)
    for pattern in wisdom["patterns"]:
        rprint(f"  [bold]Pattern:[/bold] {pattern.get('description', pattern.get('id', ''))}")
    summary = wisdom["summary"]
    rprint(f"\n[dim]{summary['notesReturned']} notes, {summary['patternsReturned']} patterns[/dim]")


# ========================================
# LESSON COMMANDS
# ========================================

lesson_app = typer.Typer(help="Lesson plans")
app.add_typer(lesson_app, name="lesson")


@lesson_app.command("list")
def lesson_list(data_dir: Optional[Path] = DataDirOption) -> None:
    """List lesson plans."""
    from src.lessons.store import list_lessons

    lessons = list_lessons(_data_dir(data_dir))
    if not lessons:
        rprint("[yellow]No lesson plans found[/yellow]")
        return

    table = Table(title=f"Lesson Plans ({len(lessons)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Group", style="dim")
    table.add_column("Minutes", justify="right")
    table.add_column("Sections", justify="right")
    for lesson in lessons:
        table.add_row(
            lesson["id"],
            lesson["title"],
            lesson["group"] or "-",
            str(lesson["duration"]),
            str(lesson["section_count"]),
        )
    console.print(table)


@lesson_app.command("show")
def lesson_show(
    lesson_id: str = typer.Argument(..., help="Lesson id (file name without .md)"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Show the timeline of a lesson plan."""
    from src.lessons.store import load_lesson

    with _handle_errors():
        lesson = load_lesson(_data_dir(data_dir), lesson_id)
    meta = lesson.meta

    header = f"[bold]{meta.title}[/bold]\n{meta.group or 'No group'} · {meta.domain or 'No domain'} · {meta.duration} min"
    if meta.one_thing:
        header += f"\n[italic]The one thing:[/italic] {meta.one_thing}"
    console.print(Panel(header, border_style="cyan"))

    if lesson.objectives:
        rprint("[bold]Objectives[/bold]")
        for i, objective in enumerate(lesson.objectives, 1):
            rprint(f"  {i}. {objective}")

    table = Table(title="Timeline")
    table.add_column("Time", style="cyan")
    table.add_column("Section")
    table.add_column("Phase", style="dim")
    for section in lesson.sections:
        table.add_row(f"{section.start_min}-{section.end_min}", section.title, section.phase or "-")
    console.print(table)


@lesson_app.command("debrief")
def lesson_debrief(
    lesson_id: str = typer.Argument(..., help="Lesson id (file name without .md)"),
    source: Path = typer.Argument(..., help="JSON file with the debrief (groupName, domain, overallRating, ...)"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Process a post-session debrief and save it under debriefs/."""
    from pydantic import ValidationError

    from src.lessons.debrief import Debrief, process_debrief

    data = _read_json_file(source)
    data["lessonId"] = lesson_id
    try:
        debrief = Debrief.model_validate(data)
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid debrief: {e}")

    with _handle_errors():
        result = process_debrief(_data_dir(data_dir), debrief)

    updates = result["profileUpdates"]
    rprint(f"[bold green]✓ Debrief saved[/bold green] to {result['debriefFilename']}")
    rprint(f"  {updates['count']} observation(s) across {len(updates['learners'])} learner(s)")
    rprint(f"  {len(result['timingAdjustments'])} timing adjustment(s)")
    rprint(f"  {result['teachingNotesSaved']} teaching note(s)")


# ========================================
# ROSTER / GROUP COMMANDS
# ========================================

roster_app = typer.Typer(help="Group rosters")
app.add_typer(roster_app, name="roster")


@roster_app.command("create")
def roster_create(
    name: str = typer.Argument(..., help="Group name"),
    domain: str = typer.Option(..., "--domain", "-d", help="Skill domain"),
    members: List[str] = typer.Option([], "--member", "-m", help="Member name (repeatable)"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Create a group and a profile per member (loads the group if it exists)."""
    from src.store.groups import create_group

    with _handle_errors():
        result = create_group(_data_dir(data_dir), name, domain, members)

    if result.is_new:
        rprint(f"[bold green]✓ Created group '{result.group}'[/bold green]")
    else:
        rprint(f"[yellow]Group '{result.group}' already exists; members unchanged[/yellow]")

    table = Table(title="Members")
    table.add_column("Learner ID", style="cyan")
    table.add_column("Name")
    for record in result.learners:
        table.add_row(record.id, record.name)
    console.print(table)


group_app = typer.Typer(help="Group analysis")
app.add_typer(group_app, name="group")


@group_app.command("summary")
def group_summary(
    group: str = typer.Argument(..., help="Group slug"),
    domain: str = typer.Option(..., "--domain", "-d", help="Skill domain"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Common gaps, strengths and pairing suggestions."""
    from src.learning.group_analysis import query_group

    settings = get_settings()
    with _handle_errors():
        summary = query_group(_data_dir(data_dir), group, domain, settings.get_threshold_config())

    if not summary["member_count"]:
        rprint(f"[yellow]{summary['message']}[/yellow]")
        return

    rprint(f"\n[bold cyan]{group}[/bold cyan] · {summary['member_count']} learners · {domain}\n")

    gaps = Table(title="Common Gaps")
    gaps.add_column("Skill", style="cyan")
    gaps.add_column("Missing", justify="right", style="red")
    for gap in summary["common_gaps"]:
        gaps.add_row(gap["skill_id"], f"{gap['missing_count']} ({gap['missing_percentage']})")
    console.print(gaps)

    strengths = Table(title="Group Strengths")
    strengths.add_column("Skill", style="cyan")
    strengths.add_column("Have it", justify="right", style="green")
    for strength in summary["group_strengths"]:
        strengths.add_row(strength["skill_id"], strength["coverage"])
    console.print(strengths)

    for pairing in summary["pairing_suggestions"]:
        rprint(f"  [magenta]↔[/magenta] {pairing['learner1']} + {pairing['learner2']}: {pairing['rationale']}")


@group_app.command("audit")
def group_audit(
    group: str = typer.Argument(..., help="Group slug"),
    domain: str = typer.Option(..., "--domain", "-d", help="Skill domain"),
    targets: List[str] = typer.Option(..., "--target", "-t", help="Target skill (repeatable)"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Audit the group's prerequisites for the target skills."""
    from src.learning.group_analysis import audit_prerequisites

    settings = get_settings()
    with _handle_errors():
        audit = audit_prerequisites(
            _data_dir(data_dir), domain, group, targets, thresholds=settings.get_threshold_config()
        )

    table = Table(title=f"Prerequisite coverage for {', '.join(targets)}")
    table.add_column("Skill", style="cyan")
    table.add_column("Coverage", justify="right")
    for skill_id, coverage in audit["prereq_coverage"].items():
        table.add_row(skill_id, f"{coverage['covered']}/{coverage['total']} ({coverage['percentage']})")
    console.print(table)

    for gap in audit["critical_gaps"]:
        rprint(f"  [red]✗[/red] {gap['label']} ({gap['coverage']}): {gap['recommendation']}")

    if audit["feasible"]:
        rprint("\n[bold green]✓ Targets are feasible for this group[/bold green]")
    else:
        rprint("\n[bold yellow]⚠ Critical prerequisite gaps[/bold yellow]")


# ========================================
# ASSESSMENT COMMANDS
# ========================================

assess_app = typer.Typer(help="Learner assessment")
app.add_typer(assess_app, name="assess")


@assess_app.command("record")
def assess_record(
    learner_id: str = typer.Argument(..., help="Learner id"),
    domain: str = typer.Option(..., "--domain", "-d", help="Skill domain"),
    skills: List[str] = typer.Option(
        ..., "--skill", "-s", help="Assessed skill as id:confidence:bloom_level (repeatable)"
    ),
    code: Optional[str] = typer.Option(None, "--code", help="Assessment session to mark complete"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """
    Record assessed skills and refresh inferred prerequisites.

    Example:
        pedagogy assess record ana-silva-x7k2m9 -d python-basics -s write-functions:0.8:application
    """
    from src.learning.assessment import AssessedSkill, assess_learner
    from src.store.assessments import record_completion

    assessed = []
    for item in skills:
        parts = item.split(":")
        if len(parts) != 3:
            raise typer.BadParameter(f"Expected id:confidence:bloom_level, got {item!r}")
        assessed.append(AssessedSkill(parts[0], _parse_confidence(parts[1]), parts[2]))

    root = _data_dir(data_dir)
    with _handle_errors():
        result = assess_learner(root, learner_id, domain, assessed, **get_settings().get_inference_config())
        if code:
            summary = ", ".join(f"{s.skill_id} ({s.confidence:g})" for s in assessed)
            record_completion(root, code, learner_id, summary)

    rprint(
        f"[bold green]✓ {learner_id}[/bold green]: "
        f"{result.total_assessed} assessed, {result.total_inferred} inferred"
    )
    table = Table(title="Inferred Skills")
    table.add_column("Skill", style="cyan")
    table.add_column("Confidence", justify="right", style="green")
    for entry in result.inferred_skills:
        table.add_row(entry.skill_id, f"{entry.confidence:.2f}")
    console.print(table)


# ========================================
# PORTAL COMMANDS
# ========================================

portal_app = typer.Typer(help="Learner portal")
app.add_typer(portal_app, name="portal")


@portal_app.command("code")
def portal_code(
    learner_id: str = typer.Argument(..., help="Learner id"),
    group: str = typer.Option(..., "--group", "-g", help="Group slug"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Generate (or regenerate) a learner's portal code."""
    from src.learning.portal import generate_portal_code

    settings = get_settings()
    with _handle_errors():
        code = generate_portal_code(
            _data_dir(data_dir),
            learner_id,
            group,
            settings.frontend_url,
            length=settings.portal_code_length,
        )
    rprint(f"[bold green]✓[/bold green] {code.name}: [cyan]{code.portal_code}[/cyan]")
    rprint(f"  {code.portal_url}")


@portal_app.command("view")
def portal_view(
    code: str = typer.Argument(..., help="Portal code"),
    language: str = typer.Option("en", "--language", "-l", help="en, es or fr"),
    audience: str = typer.Option("learner", "--audience", "-a", help="learner, parent, employer or general"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Show what a learner's portal displays."""
    from src.learning.portal import get_portal_view

    settings = get_settings()
    with _handle_errors():
        view = get_portal_view(
            _data_dir(data_dir), code, language=language, audience=audience, frontend_url=settings.frontend_url
        )

    progress = view["progress_data"]
    console.print(Panel(view["narrative"], title=view["learner"]["name"], border_style="cyan"))
    rprint(
        f"  Known: {progress['known_count']}/{progress['total_skills_in_domain']} "
        f"({progress['assessed_count']} assessed, {progress['inferred_count']} inferred)"
    )
    for pending in view["assessments"]["pending"]:
        rprint(f"  [yellow]Pending assessment[/yellow] {pending['code']}: {pending['assess_url']}")
    for note in view["notes"]:
        rprint(f"  [dim]Note:[/dim] {note['content'][:80]}")


# ========================================
# CURRICULUM COMMANDS
# ========================================

curriculum_app = typer.Typer(help="Multi-session curricula")
app.add_typer(curriculum_app, name="curriculum")


@curriculum_app.command("compose")
def curriculum_compose(
    title: str = typer.Argument(..., help="Curriculum title"),
    domain: str = typer.Option(..., "--domain", "-d", help="Skill domain"),
    group: str = typer.Option(..., "--group", "-g", help="Group slug"),
    sessions: int = typer.Option(..., "--sessions", "-n", min=1, help="Number of sessions"),
    duration: int = typer.Option(60, "--duration", help="Minutes per session"),
    objectives: List[str] = typer.Option([], "--objective", "-o", help="Learning objective (repeatable)"),
    targets: List[str] = typer.Option([], "--target", "-t", help="Target skill (repeatable; default all)"),
    constraints: Optional[str] = typer.Option(None, "--constraints", help="Free-text constraints"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Sequence skills across sessions and write the curriculum document."""
    from src.curriculum.composer import compose_curriculum

    thresholds = get_settings().get_threshold_config()
    with _handle_errors():
        plan = compose_curriculum(
            _data_dir(data_dir),
            title,
            domain,
            group,
            sessions,
            duration,
            objectives or [title],
            target_skills=targets or None,
            constraints=constraints,
            known_threshold=thresholds["known"],
            coverage_threshold=thresholds["curriculum_coverage"],
        )

    table = Table(title=f"{plan.title} ({plan.slug})")
    table.add_column("Session", justify="right", style="cyan")
    table.add_column("Focus", style="magenta")
    table.add_column("Skills")
    for session in plan.sessions:
        table.add_row(
            str(session.session),
            session.bloom_focus,
            ", ".join(f"{s.id} [{s.readiness}]" for s in session.skills) or "-",
        )
    console.print(table)

    if plan.min_sessions_recommended > plan.number_of_sessions:
        rprint(
            f"[yellow]⚠ Critical path needs at least {plan.min_sessions_recommended} sessions[/yellow]"
        )
    rprint(f"[bold green]✓ Written to {plan.file}[/bold green]")
    logger.info(f"Composed curriculum {plan.slug}")


@curriculum_app.command("advance")
def curriculum_advance(
    slug: str = typer.Argument(..., help="Curriculum slug"),
    session: int = typer.Option(..., "--session", "-s", min=1, help="Completed session number"),
    outcome: str = typer.Option(..., "--outcome", help="ahead, on_track, behind or struggled"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Session notes"),
    confirmed: List[str] = typer.Option([], "--confirmed", help="Skill confirmed (repeatable)"),
    struggled: List[str] = typer.Option([], "--struggled", help="Skill the group struggled with (repeatable)"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Mark a session taught and print pacing adjustments."""
    from src.curriculum.progress import advance_curriculum

    if outcome not in ("ahead", "on_track", "behind", "struggled"):
        raise typer.BadParameter(f"Unknown outcome: {outcome}")

    with _handle_errors():
        result = advance_curriculum(
            _data_dir(data_dir),
            slug,
            session,
            outcome,  # type: ignore[arg-type]
            notes=notes,
            skills_confirmed=confirmed,
            skills_struggled=struggled,
        )

    rprint(f"[bold green]✓[/bold green] {result.message}")
    for adjustment in result.adjustments:
        rprint(f"  • {adjustment}")


# ========================================
# EDUCATOR COMMANDS
# ========================================

educator_app = typer.Typer(help="Educator profiles")
app.add_typer(educator_app, name="educator")


@educator_app.command("list")
def educator_list(data_dir: Optional[Path] = DataDirOption) -> None:
    """List educator profiles."""
    from src.store.educators import list_educators

    educators = list_educators(_data_dir(data_dir))
    if not educators:
        rprint("[yellow]No educator profiles found[/yellow]")
        return

    table = Table(title=f"Educators ({len(educators)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Top style", style="magenta")
    table.add_column("Sessions", justify="right")
    table.add_column("Domains", style="dim")
    for educator in educators:
        table.add_row(
            educator["id"],
            educator["name"],
            educator["top_style"] or "-",
            str(educator["session_count"]),
            ", ".join(educator["domains"]) or "-",
        )
    console.print(table)


@educator_app.command("show")
def educator_show(
    educator_id: str = typer.Argument(..., help="Educator id"),
    data_dir: Optional[Path] = DataDirOption,
) -> None:
    """Show an educator's profile summary."""
    from src.store.educators import educator_summary, load_educator

    with _handle_errors():
        profile = load_educator(_data_dir(data_dir), educator_id)
    summary = educator_summary(profile)

    header = f"[bold]{profile.name}[/bold]"
    if profile.bio:
        header += f"\n{profile.bio}"
    header += f"\n{profile.session_count} sessions · {profile.debrief_count} debriefs"
    console.print(Panel(header, border_style="cyan"))

    rprint("[bold]Dominant styles[/bold]")
    for style in summary["dominant_styles"]:
        rprint(f"  {style['style']}: {style['percentage']}%")
    if summary["top_strengths"]:
        rprint(f"[bold]Strengths:[/bold] {', '.join(summary['top_strengths'])}")
    if summary["growth_areas"]:
        rprint(f"[bold]Growth areas:[/bold] {', '.join(summary['growth_areas'])}")
    if summary["active_domains"]:
        rprint(f"[bold]Domains:[/bold] {', '.join(summary['active_domains'])}")


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]pedagogy-engine[/bold] v0.1.0")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
