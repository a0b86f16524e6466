"""
Learning: services over learner and group records.

- assessment: record assessed skills and infer prerequisites
- group_analysis: group skill distribution, prerequisite audits, assessment status
- portal: learner portal codes and the read-only portal view
"""

from src.learning.assessment import AssessedSkill, AssessmentResult, assess_learner
from src.learning.group_analysis import audit_prerequisites, check_assessment_status, query_group
from src.learning.portal import generate_portal_code, get_portal_view

__all__ = [
    "AssessedSkill",
    "AssessmentResult",
    "assess_learner",
    "audit_prerequisites",
    "check_assessment_status",
    "query_group",
    "generate_portal_code",
    "get_portal_view",
]
