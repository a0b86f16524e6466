"""
Unit tests for lesson plan parsing, live feedback logs, debriefs and curriculum sequencing.
"""

import json

import pytest
from pydantic import ValidationError

from src.core.errors import GraphValidationError, PathTraversalError, RecordNotFoundError
from src.curriculum.composer import (
    build_group_skill_profile,
    compose_curriculum,
    find_teaching_frontier,
    skills_per_session,
)
from src.curriculum.progress import (
    advance_curriculum,
    list_curricula,
    parse_curriculum,
    read_curriculum,
    sanitize_slug,
)
from src.lessons.debrief import Debrief, process_debrief
from src.lessons.parser import parse_lesson, parse_sections
from src.lessons.store import list_lessons, load_lesson, record_section_feedback
from src.store.educators import load_educator, update_educator
from src.store.learners import read_learner
from src.store.markdown import section_body, table_field


class TestLessonParser:
    def test_meta(self, data_dir):
        lesson = load_lesson(data_dir, "loops-into-functions")
        assert lesson.meta.title == "Loops into Functions"
        assert lesson.meta.group == "Tuesday Cohort"
        assert lesson.meta.date == "2026-03-10"
        assert lesson.meta.domain == "python-basics"
        assert lesson.meta.duration == 60
        assert lesson.meta.topic == "Turning loops into functions"
        assert lesson.meta.one_thing == "A function names a piece of repeated work"

    def test_objectives(self, data_dir):
        lesson = load_lesson(data_dir, "loops-into-functions")
        assert lesson.objectives == ["Write a for loop over a list", "Extract a loop body into a function"]

    def test_sections(self, data_dir):
        sections = load_lesson(data_dir, "loops-into-functions").sections
        assert [(s.id, s.phase, s.start_min, s.end_min, s.duration_min) for s in sections] == [
            ("section-0", "OPENING", 0, 5, 5),
            ("section-1", "OPENING", 5, 10, 5),
            ("section-2", "PRACTICE", 10, 40, 30),
            ("section-3", "PRACTICE", 40, 60, 20),
        ]
        assert sections[0].activities == [
            "Educator: Greet the group and state today's goal.",
            "Say: Today we turn loops into functions.",
        ]
        assert sections[2].activities == ["Watch for: pairs where one person types everything."]

    def test_phase_fallback(self):
        markdown = "# Short\n\n### PHASE 1: HOOK (0:00 - 0:10)\n\nTalk.\n\n### PHASE 2: BUILD (0:10 - 1:30)\n"
        sections = parse_sections(markdown)
        assert [(s.id, s.title, s.duration_min) for s in sections] == [("phase-0", "HOOK", 10), ("phase-1", "BUILD", 80)]

    def test_defaults(self):
        lesson = parse_lesson("no headings here")
        assert lesson.meta.title == "Untitled Lesson"
        assert lesson.meta.duration == 60
        assert lesson.sections == []
        assert lesson.objectives == []

    def test_missing_lesson(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            load_lesson(data_dir, "nope")

    def test_list_lessons(self, data_dir):
        lessons = list_lessons(data_dir)
        assert lessons == [
            {
                "id": "loops-into-functions",
                "title": "Loops into Functions",
                "group": "Tuesday Cohort",
                "date": "2026-03-10",
                "domain": "python-basics",
                "duration": 60,
                "topic": "Turning loops into functions",
                "section_count": 4,
                "objective_count": 2,
            }
        ]

    def test_list_lessons_without_directory(self, tmp_path):
        assert list_lessons(tmp_path) == []


class TestSectionFeedback:
    def test_appends_jsonl(self, data_dir, fixed_now):
        record_section_feedback(data_dir, "loops-into-functions", "section-0", "went_well", now=fixed_now)
        path = record_section_feedback(
            data_dir, "loops-into-functions", "section-2", "struggled", notes="ran long", elapsed_min=42.5, now=fixed_now
        )
        assert path.name == "loops-into-functions-2026-03-10.jsonl"
        entries = [json.loads(line) for line in path.read_text().splitlines()]
        assert [e["sectionId"] for e in entries] == ["section-0", "section-2"]
        assert entries[1]["notes"] == "ran long"
        assert entries[1]["elapsedMin"] == 42.5
        assert entries[0]["notes"] == ""

    def test_rejects_traversal(self, data_dir):
        with pytest.raises(PathTraversalError):
            record_section_feedback(data_dir, "../escape", "section-0", "skipped")


def make_debrief(**overrides):
    payload = {
        "lessonId": "loops-into-functions",
        "groupName": "tuesday-cohort",
        "domain": "python-basics",
        "overallRating": "good",
        "overallNotes": "Energy stayed high until the wrap-up.",
        "sectionFeedback": [
            {"sectionTitle": "Welcome", "timing": "as_planned", "engagement": "high"},
            {
                "sectionTitle": "Pair programming",
                "timing": "longer",
                "timingDelta": 5,
                "engagement": "moderate",
                "usedContingency": True,
                "surprises": "Two pairs swapped roles unprompted",
            },
        ],
        "learnerObservations": [
            {
                "learnerId": "cara-lopez-ghj789",
                "observations": [
                    {"skillId": "loops", "type": "breakthrough", "detail": "Explained range() to a peer",
                     "confidenceChange": 0.1},
                ],
            },
            {
                "learnerId": "ghost-learner-0000",
                "observations": [
                    {"skillId": "loops", "type": "other", "detail": "Not on the roster", "confidenceChange": 0},
                ],
            },
        ],
        "teachingNotes": [
            {"skillId": "functions", "noteType": "prerequisite_gap", "note": "Needed a refresher on return values"},
        ],
    }
    payload.update(overrides)
    return Debrief.model_validate(payload)


class TestDebrief:
    def test_learner_notes_and_stamp(self, data_dir, fixed_now):
        result = process_debrief(data_dir, make_debrief(), now=fixed_now)
        assert result["profileUpdates"]["count"] == 1
        assert result["profileUpdates"]["learners"] == ["cara-lopez-ghj789"]

        content = read_learner(data_dir, "cara-lopez-ghj789").content
        notes = section_body(content, "Notes")
        assert notes.startswith("### Debrief Observations (2026-03-10)")
        assert "- [2026-03-10] breakthrough: Explained range() to a peer (loops: +0.1 confidence, observational)" in notes
        assert "_No notes yet._" not in notes
        assert table_field(content, "Last assessed") == "2026-03-10T09:30:00+00:00 (debrief)"

    def test_existing_notes_are_kept(self, data_dir, fixed_now):
        debrief = make_debrief(
            learnerObservations=[
                {
                    "learnerId": "ana-silva-abc234",
                    "observations": [
                        {"skillId": "functions", "type": "struggled", "detail": "Mixed up print and return",
                         "confidenceChange": -0.2},
                    ],
                }
            ]
        )
        process_debrief(data_dir, debrief, now=fixed_now)
        notes = section_body(read_learner(data_dir, "ana-silva-abc234").content, "Notes")
        assert notes.startswith("Prefers worked examples.\n\n### Debrief Observations (2026-03-10)")
        assert "(functions: -0.2 confidence, observational)" in notes

    def test_timing_adjustments_and_teaching_log(self, data_dir, fixed_now):
        result = process_debrief(data_dir, make_debrief(), now=fixed_now)
        assert result["timingAdjustments"] == [
            {"section": "Pair programming", "timing": "longer", "delta": 5, "notes": ""}
        ]
        assert result["teachingNotesSaved"] == 1
        log = (data_dir / "domains" / "python-basics" / "teaching-notes.md").read_text()
        assert "- **[2026-03-10]** (prerequisite_gap) functions: Needed a refresher on return values" in log

    def test_debrief_document(self, data_dir, fixed_now):
        result = process_debrief(data_dir, make_debrief(), now=fixed_now)
        assert result["debriefFilename"] == "loops-into-functions-debrief-2026-03-10.md"
        document = (data_dir / "debriefs" / result["debriefFilename"]).read_text()
        assert document.startswith("# Post-Session Debrief: loops-into-functions")
        assert "| **Overall rating** | good |" in document
        assert "| **Timing** | longer (+5 min) |" in document
        assert "| **Used contingency** | Yes |" in document
        assert "**Surprises:** Two pairs swapped roles unprompted" in document
        assert "## Unplanned Moments\n\n_Nothing reported._" in document
        assert "- **Learner profiles updated:** 1 observation(s) across 1 learner(s)" in document
        assert "- **Timing adjustments recorded:** 1 section(s)" in document

    def test_educator_debrief_count(self, data_dir, fixed_now):
        update_educator(data_dir, "ms-rivera", {"name": "Alex Rivera"})
        process_debrief(data_dir, make_debrief(educatorId="ms-rivera"), now=fixed_now)
        assert load_educator(data_dir, "ms-rivera").debrief_count == 1

    def test_unknown_lesson(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            process_debrief(data_dir, make_debrief(lessonId="no-such-lesson"))

    def test_observation_range_enforced(self):
        with pytest.raises(ValidationError):
            make_debrief(
                learnerObservations=[
                    {
                        "learnerId": "cara-lopez-ghj789",
                        "observations": [
                            {"skillId": "loops", "type": "other", "detail": "x", "confidenceChange": 0.5},
                        ],
                    }
                ]
            )


class TestGroupSkillProfile:
    def test_coverage(self, data_dir):
        profiles = [
            read_learner(data_dir, learner_id).profile
            for learner_id in ("ana-silva-abc234", "ben-okafor-def567", "cara-lopez-ghj789")
        ]
        profile = build_group_skill_profile(profiles)
        assert profile.total_learners == 3
        assert profile.coverage["variables"].have_it == 2
        assert profile.fraction("variables") == pytest.approx(2 / 3)
        assert profile.fraction("debugging") == 0.0

    def test_frontier_stops_at_covered_skills(self, skill_graph, data_dir):
        profiles = [read_learner(data_dir, "ana-silva-abc234").profile]
        profile = build_group_skill_profile(profiles)
        # Ana alone covers everything except debugging
        assert find_teaching_frontier(skill_graph, ["debugging"], profile) == ["debugging"]


class TestComposeCurriculum:
    def test_skills_per_session(self):
        assert skills_per_session(60) == 2
        assert skills_per_session(90) == 3
        assert skills_per_session(10) == 1

    def test_default_targets(self, data_dir, fixed_now):
        plan = compose_curriculum(
            data_dir, "Python Foundations", "python-basics", "tuesday-cohort", 3, 60,
            ["Write and debug small programs"], now=fixed_now,
        )
        assert plan.slug == "python-foundations"
        assert plan.target_skills == ["debugging"]
        assert plan.skills_to_teach == ["variables", "data-types", "control-flow", "loops", "functions", "debugging"]
        assert plan.critical_path_length == 5
        assert plan.min_sessions_recommended == 3
        assert [[s.id for s in session.skills] for session in plan.sessions] == [
            ["variables", "data-types"],
            ["control-flow", "loops"],
            ["functions", "debugging"],
        ]
        assert [s.readiness for s in plan.sessions[0].skills] == ["ready", "blocked"]
        assert [s.readiness for s in plan.sessions[2].skills] == ["ready", "blocked"]
        assert plan.sessions[1].review_skills == [
            {"id": "variables", "label": "Use variables"},
            {"id": "data-types", "label": "Distinguish data types"},
        ]
        assert plan.sessions[2].milestone == "Students can debug a program"
        assert plan.file.read_text() == plan.content
        assert "### Session 1: Knowledge-Level Focus" in plan.content
        assert "| **Status** | draft |" in plan.content

    def test_too_few_sessions_warns(self, data_dir):
        plan = compose_curriculum(data_dir, "Crash Course", "python-basics", "tuesday-cohort", 2, 60, ["x"])
        assert "**Warning:** 2 sessions may not be enough" in plan.content
        assert [s.id for s in plan.sessions[-1].skills] == ["control-flow", "loops", "functions", "debugging"]

    def test_extra_sessions_become_review(self, data_dir):
        plan = compose_curriculum(
            data_dir, "Long Course", "python-basics", "tuesday-cohort", 6, 60, ["x"], target_skills=["loops"]
        )
        assert plan.skills_to_teach == ["variables", "control-flow", "loops"]
        assert len(plan.sessions) == 6
        assert plan.sessions[-1].skills == []
        assert plan.sessions[-1].milestone == "Review and consolidate skills from previous sessions"
        assert "Extra sessions available" in plan.content

    def test_unknown_target(self, data_dir):
        with pytest.raises(GraphValidationError) as exc:
            compose_curriculum(data_dir, "Bad", "python-basics", "tuesday-cohort", 2, 60, ["x"], target_skills=["recursion"])
        assert "recursion" in str(exc.value)
        assert "variables" in exc.value.details["valid_skill_ids"]

    def test_prewritten_content(self, data_dir):
        plan = compose_curriculum(
            data_dir, "Custom", "python-basics", "tuesday-cohort", 1, 60, ["x"], content="# Curriculum: Custom\n"
        )
        assert plan.file.read_text() == "# Curriculum: Custom\n"

    def test_unknown_group(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            compose_curriculum(data_dir, "X", "python-basics", "monday", 2, 60, ["x"])


class TestAdvanceCurriculum:
    @pytest.fixture
    def curriculum(self, data_dir, fixed_now):
        return compose_curriculum(
            data_dir, "Python Foundations", "python-basics", "tuesday-cohort", 3, 60, ["x"], now=fixed_now
        )

    def test_parse_composed(self, curriculum):
        parsed = parse_curriculum(curriculum.content)
        assert parsed.title == "Python Foundations"
        assert parsed.status == "draft"
        assert parsed.fields["Group"] == "tuesday-cohort"
        assert [s.number for s in parsed.sessions] == [1, 2, 3]
        assert parsed.sessions[0].milestone == "Students can distinguish data types"

    def test_list(self, data_dir, curriculum):
        assert list_curricula(data_dir) == [
            {
                "slug": "python-foundations",
                "title": "Python Foundations",
                "group": "tuesday-cohort",
                "domain": "python-basics",
                "status": "draft",
                "sessions": 3,
            }
        ]

    def test_behind(self, data_dir, curriculum, fixed_now):
        result = advance_curriculum(
            data_dir, "python-foundations", 1, "behind",
            notes="ran out of time", skills_struggled=["data-types"], now=fixed_now,
        )
        assert result.remaining_sessions == 2
        assert "Skills that need reinforcement: data-types" in result.adjustments
        assert result.message == "Curriculum updated. Session 1/3 marked as behind."

        markdown, parsed = read_curriculum(data_dir, "python-foundations")
        assert parsed.status == "active (session 1/3 completed)"
        assert parsed.sessions[0].completed
        assert not parsed.sessions[1].completed
        assert "- **Notes:** ran out of time" in markdown
        assert "## Session 1 Adjustment Log" in markdown

    def test_struggled_message(self, data_dir, curriculum):
        result = advance_curriculum(data_dir, "python-foundations", 3, "struggled")
        assert result.message.endswith("Remediation recommendations added.")
        assert "Advanced target skills may need to be deferred to a follow-up curriculum." in result.adjustments

    def test_ahead_early_finish(self, data_dir, curriculum):
        result = advance_curriculum(data_dir, "python-foundations", 1, "ahead")
        assert result.adjustments[-1] == "Use extra time for deeper practice at higher Bloom's levels."

    @pytest.mark.parametrize("session", [0, 4])
    def test_session_out_of_range(self, data_dir, curriculum, session):
        with pytest.raises(GraphValidationError):
            advance_curriculum(data_dir, "python-foundations", session, "on_track")

    def test_missing_curriculum(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            advance_curriculum(data_dir, "nothing", 1, "on_track")

    def test_slug_sanitized(self):
        assert sanitize_slug("../Python Foundations") == "python-foundations"
        with pytest.raises(PathTraversalError):
            sanitize_slug("...")
