"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
a temporary data directory seeded with one domain graph, a group with
three learners, a lesson plan, an assessment session and a portal note.
"""
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tests.fakes import FakeRuntime  # noqa: E402

DOMAIN = "python-basics"
GROUP = "tuesday-cohort"
FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)

SKILLS = [
    {"id": "variables", "label": "Use variables", "bloom_level": "knowledge", "dependencies": []},
    {"id": "data-types", "label": "Distinguish data types", "bloom_level": "comprehension", "dependencies": ["variables"]},
    {"id": "control-flow", "label": "Branch with if/else", "bloom_level": "application", "dependencies": ["variables"]},
    {"id": "loops", "label": "Iterate with loops", "bloom_level": "application", "dependencies": ["control-flow"]},
    {"id": "functions", "label": "Write functions", "bloom_level": "application", "dependencies": ["loops", "data-types"]},
    {"id": "debugging", "label": "Debug a program", "bloom_level": "analysis", "dependencies": ["functions"]},
]

EDGES = [
    {"source": "variables", "target": "data-types", "confidence": 0.9, "type": "prerequisite"},
    {"source": "variables", "target": "control-flow", "confidence": 0.85, "type": "prerequisite"},
    {"source": "control-flow", "target": "loops", "confidence": 0.9, "type": "prerequisite"},
    {"source": "loops", "target": "functions", "confidence": 0.8, "type": "prerequisite"},
    {"source": "data-types", "target": "functions", "confidence": 0.7, "type": "prerequisite"},
    {"source": "functions", "target": "debugging", "confidence": 0.8, "type": "prerequisite"},
]

GROUP_MD = f"""# Group: Tuesday Cohort

| Field | Value |
|---|---|
| **Slug** | {GROUP} |
| **Domain** | {DOMAIN} |
| **Created** | 2026-03-01T10:00:00+00:00 |
| **Member count** | 3 |

## Members

- Ana Silva (`ana-silva-abc234`)
- Ben Okafor (`ben-okafor-def567`)
- Cara Lopez (`cara-lopez-ghj789`)

## Interview Context

Evening adult-education class, mostly career changers.

## Constraints

_No constraints recorded yet._
"""

ANA_MD = f"""# Learner Profile: Ana Silva

| Field | Value |
|---|---|
| **ID** | ana-silva-abc234 |
| **Name** | Ana Silva |
| **Group** | {GROUP} |
| **Domain** | {DOMAIN} |
| **Created** | 2026-03-01T10:00:00+00:00 |
| **Last assessed** | 2026-03-05T14:00:00+00:00 |

## Assessed Skills

- functions: 0.9 confidence — demonstrated at application level
- loops: 0.85 confidence — demonstrated at application level

## Inferred Skills

- control-flow: 0.77 confidence (inferred)
- data-types: 0.63 confidence (inferred)
- variables: 0.65 confidence (inferred)

## Affective Profile

- **Confidence:** High, volunteers answers
- **Social dynamics:** Helps neighbours without being asked

## Notes

Prefers worked examples.
"""

BEN_MD = f"""# Learner Profile: Ben Okafor

| Field | Value |
|---|---|
| **ID** | ben-okafor-def567 |
| **Name** | Ben Okafor |
| **Group** | {GROUP} |
| **Domain** | {DOMAIN} |
| **Created** | 2026-03-01T10:00:00+00:00 |
| **Last assessed** | 2026-03-05T15:00:00+00:00 |

## Assessed Skills

- variables: 0.8 confidence — demonstrated at knowledge level

## Inferred Skills

_No skills inferred._

## Notes

_No notes yet._
"""

CARA_MD = f"""# Learner Profile: Cara Lopez

| Field | Value |
|---|---|
| **ID** | cara-lopez-ghj789 |
| **Name** | Cara Lopez |
| **Group** | {GROUP} |
| **Domain** | {DOMAIN} |
| **Created** | 2026-03-01T10:00:00+00:00 |
| **Last assessed** | Not yet assessed |

## Assessed Skills

_No skills assessed yet._

## Inferred Skills

_No skills inferred yet._

## Portal

| Field | Value |
|---|---|
| **Portal Code** | cara-tuesday-x7k2 |
| **Portal URL** | http://localhost:3001/learner/cara-tuesday-x7k2 |
| **Generated** | 2026-03-02T10:00:00+00:00 |

## Notes

_No notes yet._
"""

LESSON_MD = f"""# Lesson Plan: Loops into Functions

**Prepared for:** Tuesday Cohort
**Date:** 2026-03-10
**Domain:** {DOMAIN}

| | |
|---|---|
| **Duration** | 60 minutes |
| **Topic** | Turning loops into functions |
| **The one thing** | A function names a piece of repeated work |

### Learning Objectives

1. Write a for loop over a list
2. Extract a loop body into a function

---

### PHASE 1: OPENING (0:00 - 0:10)

**[0:00 - 0:05] Welcome (5 min)**

Educator: Greet the group and state today's goal.
Say: Today we turn loops into functions.

**[0:05 - 0:10] Warm-up (5 min)**

Students: Predict the output of a three-line loop.

### PHASE 2: PRACTICE (0:10 - 1:00)

**[0:10 - 0:40] Pair programming (30 min)**

Watch for: pairs where one person types everything.

**[0:40 - 1:00] Wrap-up (20 min)**

Educator: Collect one insight per pair.
"""

ASSESSMENT_CODE = "ABCD1234"

ASSESSMENT_MD = f"""# Assessment Session: {ASSESSMENT_CODE}

| Field | Value |
|---|---|
| **Code** | {ASSESSMENT_CODE} |
| **Group** | {GROUP} |
| **Domain** | {DOMAIN} |
| **Created** | 2026-03-04T09:00:00+00:00 |
| **Status** | active |

## Assessment Context

Pre-assessment before the loops unit.

## Target Skills

- loops
- functions

## Target Learners

_All group members_

## Completed Assessments

- ana-silva-abc234: Completed 2026-03-05 — functions (0.9), loops (0.85)
"""

NOTE = {
    "id": "note-2026-03-06-ab12",
    "learnerId": "cara-lopez-ghj789",
    "groupId": GROUP,
    "createdAt": "2026-03-06T12:00:00+00:00",
    "content": "Great questions in class today.",
    "audienceHint": "learner",
    "pinned": False,
}


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (API and CLI against a temp data dir)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def skills_data():
    return {"skills": [dict(s) for s in SKILLS]}


@pytest.fixture
def edges_data():
    return {"edges": [dict(e) for e in EDGES]}


@pytest.fixture
def skill_graph(skills_data, edges_data):
    """The seeded domain as an in-memory SkillGraph."""
    from src.store.domains import SkillGraph

    return SkillGraph(domain=DOMAIN, skills=skills_data["skills"], edges=edges_data["edges"])


@pytest.fixture
def data_dir(tmp_path, skills_data, edges_data):
    """A data directory seeded with one of every record type."""
    root = tmp_path / "data"

    domain_dir = root / "domains" / DOMAIN
    domain_dir.mkdir(parents=True)
    (domain_dir / "skills.json").write_text(json.dumps(skills_data, indent=2), encoding="utf-8")
    (domain_dir / "dependencies.json").write_text(json.dumps(edges_data, indent=2), encoding="utf-8")

    (root / "groups").mkdir()
    (root / "groups" / f"{GROUP}.md").write_text(GROUP_MD, encoding="utf-8")

    learners = root / "learners"
    learners.mkdir()
    (learners / "ana-silva-abc234.md").write_text(ANA_MD, encoding="utf-8")
    (learners / "ben-okafor-def567.md").write_text(BEN_MD, encoding="utf-8")
    (learners / "cara-lopez-ghj789.md").write_text(CARA_MD, encoding="utf-8")

    (root / "lessons").mkdir()
    (root / "lessons" / "loops-into-functions.md").write_text(LESSON_MD, encoding="utf-8")

    (root / "assessments").mkdir()
    (root / "assessments" / f"{ASSESSMENT_CODE}.md").write_text(ASSESSMENT_MD, encoding="utf-8")

    note_dir = root / "notes" / "cara-lopez-ghj789"
    note_dir.mkdir(parents=True)
    (note_dir / f"{NOTE['id']}.json").write_text(json.dumps(NOTE, indent=2), encoding="utf-8")

    return root


@pytest.fixture
def settings(data_dir, tmp_path):
    """Settings pointing at the seeded data directory."""
    from config import Settings

    return Settings(
        _env_file=None,
        agent_workspace=str(tmp_path),
        data_dir=str(data_dir),
        agents_dir=str(tmp_path / "agents"),
        log_level="WARNING",
    )


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def client(settings, fake_runtime):
    """TestClient over an app wired to the seeded data and the fake runtime."""
    from fastapi.testclient import TestClient

    from src.api.main import create_app

    with TestClient(create_app(settings=settings, runtime=fake_runtime)) as test_client:
        yield test_client
