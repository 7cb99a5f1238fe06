from __future__ import annotations

from typing import Protocol

from app.models.course import (
    Course,
    CourseHierarchy,
    CourseModule,
    Lesson,
    ModuleOutline,
    Quiz,
)


class CourseRepo(Protocol):
    """Read side of the content hierarchy (Course → Modules → Lessons)."""

    async def get_course(self, course_id: str) -> Course | None: ...
    async def get_hierarchy(self, course_id: str) -> CourseHierarchy | None: ...
    async def list_course_ids(self) -> list[str]: ...
    async def list_instructor_course_ids(self, user_id: str) -> set[str]: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._courses: dict[str, Course] = {}
        self._modules: dict[str, CourseModule] = {}
        self._lessons: dict[str, Lesson] = {}
        self._quizzes: dict[str, Quiz] = {}
        self._instructors: dict[str, set[str]] = {}  # user_id -> course ids

    # --- seeding (the real store is written by other services) ---

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def add_module(self, module: CourseModule) -> None:
        self._modules[module.id] = module

    def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    def add_quiz(self, quiz: Quiz) -> None:
        self._quizzes[quiz.id] = quiz

    def remove_module(self, module_id: str) -> None:
        self._modules.pop(module_id, None)

    def assign_instructor(self, user_id: str, course_id: str) -> None:
        self._instructors.setdefault(user_id, set()).add(course_id)

    def clear(self) -> None:
        self._courses.clear()
        self._modules.clear()
        self._lessons.clear()
        self._quizzes.clear()
        self._instructors.clear()

    # --- linkage lookups used by the sibling in-memory repos ---

    def find_lesson(self, lesson_id: str) -> tuple[Lesson, str] | None:
        """Return (lesson, course_id), or None if any link up to the course is broken."""
        lesson = self._lessons.get(lesson_id)
        if lesson is None:
            return None
        module = self._modules.get(lesson.module_id)
        if module is None or module.course_id not in self._courses:
            return None
        return lesson, module.course_id

    def find_quiz(self, quiz_id: str) -> tuple[Quiz, Lesson, str] | None:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            return None
        found = self.find_lesson(quiz.lesson_id)
        if found is None:
            return None
        lesson, course_id = found
        return quiz, lesson, course_id

    # --- CourseRepo ---

    async def get_course(self, course_id: str) -> Course | None:
        return self._courses.get(course_id)

    async def get_hierarchy(self, course_id: str) -> CourseHierarchy | None:
        course = self._courses.get(course_id)
        if course is None:
            return None

        modules = sorted(
            (m for m in self._modules.values() if m.course_id == course_id),
            key=lambda m: m.position,
        )
        outlines = []
        for module in modules:
            lessons = sorted(
                (lesson for lesson in self._lessons.values() if lesson.module_id == module.id),
                key=lambda lesson: lesson.position,
            )
            outlines.append(ModuleOutline(module=module, lessons=tuple(lessons)))
        return CourseHierarchy(course=course, modules=tuple(outlines))

    async def list_course_ids(self) -> list[str]:
        return list(self._courses)

    async def list_instructor_course_ids(self, user_id: str) -> set[str]:
        return set(self._instructors.get(user_id, set()))
