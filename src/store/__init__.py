"""
Store: markdown/JSON record storage under the configured data directory.

Layout:
- domains/{domain}/skills.json, dependencies.json  Skill graphs (plus manifest.json,
                                                   teaching-notes.json and .md)
- learners/{id}.md                                 Learner profiles
- groups/{slug}.md                                 Group profiles
- assessments/{CODE}.md                            Assessment sessions
- notes/{learner}/{note}.json                      Portal notes
- educators/{id}.json                              Educator profiles
- debriefs/{lesson}-debrief-{date}.md              Post-session debriefs
"""

from src.store.domains import Edge, Skill, SkillGraph, list_domains, load_graph
from src.store.learners import LearnerProfile, SkillEntry, parse_learner_profile
from src.store.paths import safe_path, slugify, validate_record_id

__all__ = [
    "Edge",
    "Skill",
    "SkillGraph",
    "list_domains",
    "load_graph",
    "LearnerProfile",
    "SkillEntry",
    "parse_learner_profile",
    "safe_path",
    "slugify",
    "validate_record_id",
]
