"""
Static strings for the learner portal narrative.

``get_portal_strings`` falls back to English for unknown languages. The
``you_*`` variants address the learner directly; the others refer to the
learner by name and are used for parents, employers and general viewers.
"""

from __future__ import annotations

import re

PORTAL_STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "progress_summary": "Progress Summary",
        "skills_count": "{known} of {total} skills",
        "has_demonstrated": "{name} has demonstrated proficiency in {skills}.",
        "you_have_demonstrated": "You have demonstrated proficiency in {skills}.",
        "and_more_skills": "and {count} more skills",
        "skills_at_level": "Skills have been demonstrated at the {level} level and above.",
        "next_steps": "Next steps: {skills}.",
        "next_step_singular": "This is the next skill in the learning path.",
        "next_step_plural": "These are the next skills available in the learning path.",
        "no_skills_yet": "No skills have been assessed yet. Complete an assessment to see progress here.",
        "bloom_knowledge": "remembering",
        "bloom_comprehension": "understanding",
        "bloom_application": "applying",
        "bloom_analysis": "analyzing",
        "bloom_synthesis": "creating",
        "bloom_evaluation": "evaluating",
    },
    "es": {
        "progress_summary": "Resumen de progreso",
        "skills_count": "{known} de {total} habilidades",
        "has_demonstrated": "{name} ha demostrado competencia en {skills}.",
        "you_have_demonstrated": "Has demostrado competencia en {skills}.",
        "and_more_skills": "y {count} habilidades más",
        "skills_at_level": "Las habilidades se han demostrado en el nivel de {level} y superior.",
        "next_steps": "Próximos pasos: {skills}.",
        "next_step_singular": "Esta es la siguiente habilidad en la ruta de aprendizaje.",
        "next_step_plural": "Estas son las siguientes habilidades disponibles en la ruta de aprendizaje.",
        "no_skills_yet": "Aún no se han evaluado habilidades. Completa una evaluación para ver tu progreso aquí.",
        "bloom_knowledge": "recordar",
        "bloom_comprehension": "comprender",
        "bloom_application": "aplicar",
        "bloom_analysis": "analizar",
        "bloom_synthesis": "crear",
        "bloom_evaluation": "evaluar",
    },
    "fr": {
        "progress_summary": "Résumé de la progression",
        "skills_count": "{known} sur {total} compétences",
        "has_demonstrated": "{name} a démontré sa maîtrise en {skills}.",
        "you_have_demonstrated": "Vous avez démontré votre maîtrise en {skills}.",
        "and_more_skills": "et {count} compétences supplémentaires",
        "skills_at_level": "Les compétences ont été démontrées au niveau {level} et au-dessus.",
        "next_steps": "Prochaines étapes : {skills}.",
        "next_step_singular": "C’est la prochaine compétence dans le parcours d’apprentissage.",
        "next_step_plural": "Ce sont les prochaines compétences disponibles dans le parcours d’apprentissage.",
        "no_skills_yet": "Aucune compétence n’a encore été évaluée. Complétez une évaluation pour voir votre progression ici.",
        "bloom_knowledge": "mémoriser",
        "bloom_comprehension": "comprendre",
        "bloom_application": "appliquer",
        "bloom_analysis": "analyser",
        "bloom_synthesis": "créer",
        "bloom_evaluation": "évaluer",
    },
}

SUPPORTED_LANGUAGES = tuple(PORTAL_STRINGS)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def get_portal_strings(language: str) -> dict[str, str]:
    return PORTAL_STRINGS.get(language, PORTAL_STRINGS["en"])


def interpolate(template: str, **values: object) -> str:
    """Fill ``{key}`` placeholders; unknown keys are left as-is."""
    return _PLACEHOLDER.sub(lambda m: str(values.get(m.group(1), m.group(0))), template)


def bloom_gerund(level: str, strings: dict[str, str]) -> str:
    return strings.get(f"bloom_{level}", level)


def skill_display_name(skill_id: str, labels: dict[str, str]) -> str:
    if skill_id in labels:
        return labels[skill_id]
    return skill_id.replace("-", " ").title()


def build_narrative(
    name: str,
    top_skills: list[dict],
    next_steps: list[dict],
    labels: dict[str, str],
    language: str = "en",
    audience: str = "learner",
) -> str:
    """Plain-text progress narrative for the portal."""
    strings = get_portal_strings(language)
    sentences = []

    if top_skills:
        shown = ", ".join(skill_display_name(s["skill_id"], labels) for s in top_skills[:3])
        if len(top_skills) > 3:
            shown += " " + interpolate(strings["and_more_skills"], count=len(top_skills) - 3)
        if audience == "learner":
            sentences.append(interpolate(strings["you_have_demonstrated"], skills=shown))
        else:
            sentences.append(interpolate(strings["has_demonstrated"], name=name, skills=shown))

        level = top_skills[0].get("bloom_level")
        if level and level != "unknown":
            sentences.append(interpolate(strings["skills_at_level"], level=bloom_gerund(level, strings)))
    else:
        sentences.append(strings["no_skills_yet"])

    if next_steps:
        sentences.append(interpolate(strings["next_steps"], skills=", ".join(s["label"] for s in next_steps)))
        sentences.append(strings["next_step_singular" if len(next_steps) == 1 else "next_step_plural"])

    return " ".join(sentences)
