from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: str
    course_id: str
    position: int
    title: str = ""


@dataclass(frozen=True, slots=True)
class Lesson:
    id: str
    module_id: str
    title: str
    kind: str = "video"  # video|article|project|quiz
    position: int = 0
    duration_minutes: int = 0


@dataclass(frozen=True, slots=True)
class Quiz:
    id: str
    lesson_id: str
    title: str
    passing_score: int = 70


@dataclass(frozen=True, slots=True)
class ModuleOutline:
    """A module together with its lessons, both already in course order."""

    module: CourseModule
    lessons: tuple[Lesson, ...] = ()


@dataclass(frozen=True, slots=True)
class CourseHierarchy:
    """Course → Modules → Lessons, ordered by position.

    An empty ``modules`` tuple is a valid hierarchy (a course with no
    content yet), distinct from an unknown course, which readers signal
    by returning None.
    """

    course: Course
    modules: tuple[ModuleOutline, ...] = ()

    def lessons(self) -> list[Lesson]:
        return [lesson for outline in self.modules for lesson in outline.lessons]

    def lesson_ids(self) -> list[str]:
        return [lesson.id for lesson in self.lessons()]
