"""Lessons: lesson plan parsing and storage."""

from src.lessons.parser import LessonMeta, LessonSection, ParsedLesson, lesson_id_from_path, parse_lesson

__all__ = ["LessonMeta", "LessonSection", "ParsedLesson", "lesson_id_from_path", "parse_lesson"]
