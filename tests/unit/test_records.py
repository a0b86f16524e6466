"""
Unit tests for learner, group, assessment, note and educator records.

All tests run against the seeded data directory from conftest.
"""

import json

import pytest

from src.core.errors import GraphValidationError, PathTraversalError, RecordNotFoundError
from src.store.assessments import (
    ALL_MEMBERS,
    CODE_ALPHABET,
    NONE_YET,
    active_sessions_for_group,
    assessments_for_learner,
    create_assessment,
    read_assessment,
    record_completion,
)
from src.store.educators import educator_summary, list_educators, load_educator, update_educator
from src.store.groups import create_group, parse_group, read_group
from src.store.learners import (
    find_learner_by_portal_code,
    load_group_learners,
    parse_learner_profile,
    read_learner,
    render_learner_profile,
)
from src.store.notes import load_notes, share_note
from src.store.teaching_notes import (
    add_teaching_note,
    append_teaching_log,
    query_teaching_notes,
    query_teaching_wisdom,
)


class TestLearnerProfiles:
    def test_parse_skills(self, data_dir):
        profile = read_learner(data_dir, "ana-silva-abc234").profile
        assert profile.name == "Ana Silva"
        assert profile.group == "tuesday-cohort"
        assert [(s.skill_id, s.confidence, s.bloom_level) for s in profile.assessed] == [
            ("functions", 0.9, "application"),
            ("loops", 0.85, "application"),
        ]
        assert len(profile.inferred) == 3
        assert profile.best_confidences()["control-flow"] == 0.77

    def test_parse_affective_profile(self, data_dir):
        affective = read_learner(data_dir, "ana-silva-abc234").profile.affective
        assert affective.confidence == "High, volunteers answers"
        assert affective.social_dynamics == "Helps neighbours without being asked"

    def test_no_affective_section(self, data_dir):
        assert read_learner(data_dir, "ben-okafor-def567").profile.affective is None

    def test_fresh_profile_has_no_skills(self, fixed_now):
        content = render_learner_profile("dee-park-aaaaaa", "Dee Park", "g", "d", fixed_now)
        profile = parse_learner_profile(content)
        assert profile.name == "Dee Park"
        assert profile.skills == []
        assert profile.last_assessed == "Not yet assessed"

    def test_missing_learner(self, data_dir):
        with pytest.raises(RecordNotFoundError, match="Learner profile 'nobody' not found"):
            read_learner(data_dir, "nobody")

    def test_traversal_id_rejected(self, data_dir):
        with pytest.raises(PathTraversalError):
            read_learner(data_dir, "../groups/tuesday-cohort")

    def test_group_learners_sorted(self, data_dir):
        ids = [r.id for r in load_group_learners(data_dir, "tuesday-cohort")]
        assert ids == ["ana-silva-abc234", "ben-okafor-def567", "cara-lopez-ghj789"]

    def test_find_by_portal_code(self, data_dir):
        record = find_learner_by_portal_code(data_dir, "cara-tuesday-x7k2")
        assert record.id == "cara-lopez-ghj789"
        assert find_learner_by_portal_code(data_dir, "nope-nope-0000") is None


class TestGroups:
    def test_read_group(self, data_dir):
        _, group = read_group(data_dir, "tuesday-cohort")
        assert group.name == "Tuesday Cohort"
        assert group.domain == "python-basics"
        assert [m.id for m in group.members] == [
            "ana-silva-abc234",
            "ben-okafor-def567",
            "cara-lopez-ghj789",
        ]
        assert group.interview_context.startswith("Evening adult-education")
        assert group.constraints == ""

    def test_missing_group(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            read_group(data_dir, "monday")

    def test_create_new_group(self, data_dir, fixed_now):
        result = create_group(data_dir, "Wednesday Group", "python-basics", ["Dee Park", "Eli Moss"], now=fixed_now)
        assert result.is_new
        assert result.group == "wednesday-group"
        assert len(result.learners) == 2
        assert all(r.id.startswith(("dee-park-", "eli-moss-")) for r in result.learners)
        assert parse_group(result.group_content).members[0].name == "Dee Park"
        assert (data_dir / "groups" / "wednesday-group.md").is_file()

    def test_existing_group_is_loaded(self, data_dir):
        result = create_group(data_dir, "Tuesday Cohort", "python-basics", ["Ignored Person"])
        assert not result.is_new
        assert len(result.learners) == 3
        assert not any(r.name == "Ignored Person" for r in result.learners)


class TestAssessments:
    def test_read_seeded(self, data_dir):
        session = read_assessment(data_dir, "ABCD1234")
        assert session.is_active
        assert session.target_skills == ["loops", "functions"]
        assert session.targets_all_members
        assert session.context == "Pre-assessment before the loops unit."
        completion = session.completion_for("ana-silva-abc234")
        assert completion.date == "2026-03-05"
        assert completion.summary == "functions (0.9), loops (0.85)"

    def test_missing(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            read_assessment(data_dir, "ZZZZ0000")

    def test_create_and_complete(self, data_dir, fixed_now):
        session = create_assessment(
            data_dir,
            "tuesday-cohort",
            "python-basics",
            learner_ids=["ben-okafor-def567"],
            educator_id="edu-1",
            now=fixed_now,
        )
        assert len(session.code) == 8
        assert set(session.code) <= set(CODE_ALPHABET)
        assert session.target_skills == []
        assert session.target_learners == ["ben-okafor-def567"]
        assert session.educator_id == "edu-1"
        assert NONE_YET in session.raw

        updated = record_completion(data_dir, session.code, "ben-okafor-def567", "variables (0.8)", now=fixed_now)
        assert NONE_YET not in updated.raw
        assert updated.completion_for("ben-okafor-def567").date == "2026-03-10"

    def test_all_members_placeholder(self, data_dir):
        session = create_assessment(data_dir, "tuesday-cohort", "python-basics")
        assert ALL_MEMBERS in session.raw
        assert session.targets_all_members

    def test_for_learner(self, data_dir):
        ana = assessments_for_learner(data_dir, "ana-silva-abc234", "tuesday-cohort", "http://portal")
        assert [a["code"] for a in ana["completed"]] == ["ABCD1234"]
        assert ana["pending"] == []

        ben = assessments_for_learner(data_dir, "ben-okafor-def567", "tuesday-cohort", "http://portal")
        assert ben["pending"][0]["assess_url"] == "http://portal/assess/ABCD1234"
        assert ben["pending"][0]["description"] == "Assessment on python basics"

    def test_active_sessions(self, data_dir):
        assert [s.code for s in active_sessions_for_group(data_dir, "tuesday-cohort")] == ["ABCD1234"]
        assert active_sessions_for_group(data_dir, "other") == []


class TestPortalNotes:
    def test_load_seeded(self, data_dir):
        notes = load_notes(data_dir, "cara-lopez-ghj789")
        assert [n.id for n in notes] == ["note-2026-03-06-ab12"]
        assert notes[0].audience_hint == "learner"

    def test_pinned_first(self, data_dir, fixed_now):
        pinned = share_note(data_dir, "cara-lopez-ghj789", "tuesday-cohort", "Read chapter 3", pinned=True, now=fixed_now)
        notes = load_notes(data_dir, "cara-lopez-ghj789")
        assert notes[0].id == pinned.id
        assert pinned.id.startswith("note-2026-03-10-")

    def test_written_with_camel_case_keys(self, data_dir, fixed_now):
        note = share_note(data_dir, "ben-okafor-def567", "tuesday-cohort", "Nice work", now=fixed_now)
        stored = json.loads((data_dir / "notes" / "ben-okafor-def567" / f"{note.id}.json").read_text())
        assert stored["learnerId"] == "ben-okafor-def567"
        assert stored["audienceHint"] == "general"

    def test_preview_truncates(self, data_dir):
        note = share_note(data_dir, "ben-okafor-def567", "tuesday-cohort", "x" * 250)
        assert note.preview == "x" * 200 + "..."

    def test_unknown_learner(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            share_note(data_dir, "ghost", "tuesday-cohort", "hello")

    def test_no_notes(self, data_dir):
        assert load_notes(data_dir, "ana-silva-abc234") == []

    def test_unreadable_note_skipped(self, data_dir):
        (data_dir / "notes" / "cara-lopez-ghj789" / "broken.json").write_text("{", encoding="utf-8")
        assert len(load_notes(data_dir, "cara-lopez-ghj789")) == 1


class TestTeachingNotes:
    def test_add_assigns_sequential_ids(self, data_dir, fixed_now):
        first, total = add_teaching_note(data_dir, "python-basics", "loops", "timing", "Took 10 minutes longer", now=fixed_now)
        second, total = add_teaching_note(
            data_dir, "python-basics", "loops", "confusion_point", "Off-by-one with range", session_ref="s-2", now=fixed_now
        )
        assert first.id == "tn-001"
        assert second.id == "tn-002"
        assert total == 2
        assert second.confirmed_in == ["s-2"]
        assert second.confidence == 0.85
        assert second.source == "educator_direct"
        assert second.context == {"groupLevel": "any", "setting": "any"}

    def test_markdown_log(self, data_dir, fixed_now):
        add_teaching_note(data_dir, "python-basics", "loops", "confusion_point", "Off-by-one with range", now=fixed_now)
        log = (data_dir / "domains" / "python-basics" / "teaching-notes.md").read_text()
        assert log.startswith("# Teaching Notes: python-basics")
        assert "- **[2026-03-10]** (what_struggled) loops: Off-by-one with range" in log

    def test_context_sizes_kept(self, data_dir):
        note, _ = add_teaching_note(
            data_dir, "python-basics", "functions", "group_composition", "Pairs work",
            context={"groupLevel": "beginner", "minGroupSize": 4},
        )
        assert note.context == {"groupLevel": "beginner", "setting": "any", "minGroupSize": 4}

    def test_query_filters(self, data_dir):
        add_teaching_note(data_dir, "python-basics", "loops", "timing", "a")
        add_teaching_note(data_dir, "python-basics", "functions", "timing", "b")
        add_teaching_note(data_dir, "python-basics", "functions", "accessibility", "c")
        assert len(query_teaching_notes(data_dir, "python-basics")) == 3
        assert [n.observation for n in query_teaching_notes(data_dir, "python-basics", skill_id="functions")] == ["b", "c"]
        assert [n.observation for n in query_teaching_notes(data_dir, "python-basics", note_type="timing")] == ["a", "b"]

    def test_query_without_file(self, data_dir):
        assert query_teaching_notes(data_dir, "python-basics") == []

    def test_corrupt_file_is_a_validation_error(self, data_dir):
        (data_dir / "domains" / "python-basics" / "teaching-notes.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(GraphValidationError):
            query_teaching_notes(data_dir, "python-basics")
        with pytest.raises(GraphValidationError):
            add_teaching_note(data_dir, "python-basics", "loops", "timing", "a")

    def test_wrong_shape_is_a_validation_error(self, data_dir):
        (data_dir / "domains" / "python-basics" / "teaching-notes.json").write_text(
            json.dumps({"domain": "python-basics", "notes": "none"}), encoding="utf-8"
        )
        with pytest.raises(GraphValidationError) as exc:
            query_teaching_notes(data_dir, "python-basics")
        assert exc.value.details["errors"]

    def test_log_appends_several_entries(self, data_dir, fixed_now):
        append_teaching_log(
            data_dir,
            "python-basics",
            [("what_worked", "loops", "Tracing tables"), ("activity_idea", "functions", "Refactor relay")],
            fixed_now,
        )
        log = (data_dir / "domains" / "python-basics" / "teaching-notes.md").read_text()
        assert log.endswith(
            "- **[2026-03-10]** (what_worked) loops: Tracing tables\n"
            "- **[2026-03-10]** (activity_idea) functions: Refactor relay\n"
        )


def wisdom_note(note_id, skill_id, note_type, confidence, sessions, level="any"):
    return {
        "id": note_id,
        "skillId": skill_id,
        "type": note_type,
        "observation": f"{note_type} on {skill_id}",
        "confidence": confidence,
        "sessionCount": sessions,
        "context": {"groupLevel": level, "setting": "any"},
        "source": "debrief_extraction",
        "createdAt": "2026-03-01T10:00:00+00:00",
        "updatedAt": "2026-03-01T10:00:00+00:00",
    }


class TestTeachingWisdom:
    @pytest.fixture
    def wisdom_dir(self, data_dir):
        payload = {
            "domain": "python-basics",
            "version": "1.0.0",
            "sessionCount": 5,
            "lastUpdated": "2026-03-09T18:00:00+00:00",
            "notes": [
                wisdom_note("tn-001", "loops", "timing", 0.6, 1),
                wisdom_note("tn-002", "loops", "confusion_point", 0.9, 2, level="beginner"),
                wisdom_note("tn-003", "functions", "success_pattern", 0.9, 4, level="advanced"),
            ],
            "patterns": [
                {"id": "pat-1", "description": "Loops before functions", "affectedSkills": ["loops", "functions"]},
                {"id": "pat-2", "description": "Types stick late", "affectedSkills": ["data-types"]},
            ],
        }
        (data_dir / "domains" / "python-basics" / "teaching-notes.json").write_text(json.dumps(payload))
        return data_dir

    def test_all_notes_ranked(self, wisdom_dir):
        wisdom = query_teaching_wisdom(wisdom_dir, "python-basics")
        assert wisdom["found"] is True
        assert wisdom["totalSessionsAnalyzed"] == 5
        assert [n["id"] for n in wisdom["notes"]] == ["tn-003", "tn-002", "tn-001"]
        assert wisdom["summary"] == {
            "notesReturned": 3,
            "patternsReturned": 2,
            "noteTypeBreakdown": {"success_pattern": 1, "confusion_point": 1, "timing": 1},
            "avgConfidence": 0.8,
        }

    def test_skill_filter_applies_to_patterns(self, wisdom_dir):
        wisdom = query_teaching_wisdom(wisdom_dir, "python-basics", skill_ids=["loops"])
        assert [n["id"] for n in wisdom["notes"]] == ["tn-002", "tn-001"]
        assert [p["id"] for p in wisdom["patterns"]] == ["pat-1"]

    def test_group_level_keeps_any(self, wisdom_dir):
        wisdom = query_teaching_wisdom(wisdom_dir, "python-basics", group_level="beginner")
        assert [n["id"] for n in wisdom["notes"]] == ["tn-002", "tn-001"]

    def test_type_and_confidence_filters(self, wisdom_dir):
        assert [n["id"] for n in query_teaching_wisdom(wisdom_dir, "python-basics", note_types=["timing"])["notes"]] == [
            "tn-001"
        ]
        assert [n["id"] for n in query_teaching_wisdom(wisdom_dir, "python-basics", min_confidence=0.7)["notes"]] == [
            "tn-003",
            "tn-002",
        ]

    def test_patterns_can_be_excluded(self, wisdom_dir):
        wisdom = query_teaching_wisdom(wisdom_dir, "python-basics", include_patterns=False)
        assert wisdom["patterns"] == []
        assert wisdom["summary"]["patternsReturned"] == 0

    def test_without_file(self, data_dir):
        wisdom = query_teaching_wisdom(data_dir, "python-basics")
        assert wisdom["found"] is False
        assert "python-basics" in wisdom["message"]


class TestEducators:
    def test_create_with_defaults(self, data_dir, fixed_now):
        profile, action = update_educator(data_dir, "ms-rivera", {"name": "Alex Rivera"}, now=fixed_now)
        assert action == "created"
        assert profile.created == fixed_now.isoformat()
        assert profile.teaching_style["socratic"] == 0.1
        assert profile.session_count == 0
        assert (data_dir / "educators" / "ms-rivera.json").is_file()

    def test_create_requires_name(self, data_dir):
        with pytest.raises(GraphValidationError, match="name is required"):
            update_educator(data_dir, "ms-rivera", {"bio": "Teaches evenings"})

    def test_update_merges_mappings_and_replaces_lists(self, data_dir):
        update_educator(
            data_dir,
            "ms-rivera",
            {
                "name": "Alex Rivera",
                "strengths": ["pacing"],
                "content_confidence": {"python-basics": {"level": "expert"}},
            },
        )
        profile, action = update_educator(
            data_dir,
            "ms-rivera",
            {"strengths": ["live coding", "questioning"], "content_confidence": {"music-theory": {"level": "novice"}}},
            increment_sessions=True,
            increment_debriefs=True,
        )
        assert action == "updated"
        assert profile.name == "Alex Rivera"
        assert profile.strengths == ["live coding", "questioning"]
        assert sorted(profile.content_confidence) == ["music-theory", "python-basics"]
        assert (profile.session_count, profile.debrief_count) == (1, 1)

    def test_summary_and_listing(self, data_dir):
        update_educator(
            data_dir,
            "ms-rivera",
            {
                "name": "Alex Rivera",
                "teaching_style": {"socratic": 0.5, "lecture": 0.3, "hands_on": 0.2},
                "strengths": ["a", "b", "c", "d"],
                "content_confidence": {"python-basics": {"level": "expert"}},
            },
        )
        summary = educator_summary(load_educator(data_dir, "ms-rivera"))
        assert [(s["style"], s["percentage"]) for s in summary["dominant_styles"]] == [
            ("socratic", 50),
            ("lecture", 30),
            ("hands_on", 20),
        ]
        assert summary["top_strengths"] == ["a", "b", "c"]
        assert summary["active_domains"] == ["python-basics"]

        assert list_educators(data_dir) == [
            {
                "id": "ms-rivera",
                "name": "Alex Rivera",
                "bio": "",
                "session_count": 0,
                "top_style": "socratic",
                "domains": ["python-basics"],
            }
        ]

    def test_missing_and_corrupt(self, data_dir):
        with pytest.raises(RecordNotFoundError):
            load_educator(data_dir, "nobody")
        (data_dir / "educators").mkdir()
        (data_dir / "educators" / "broken.json").write_text("{", encoding="utf-8")
        with pytest.raises(GraphValidationError):
            load_educator(data_dir, "broken")
        assert list_educators(data_dir) == []

    def test_rejects_traversal_id(self, data_dir):
        with pytest.raises(PathTraversalError):
            load_educator(data_dir, "../secrets")
