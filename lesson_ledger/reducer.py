"""
Domain reducer.

``reduce(state, action)`` is the only place ledger state changes. It is
pure and total:

- it never raises, an unknown id or action leaves the state as it was
- it never edits the state it was given, changed collections are new lists
- a transition that changes nothing returns the very same state object,
  so the store can tell "nothing happened" apart from "something did"

Students are kept sorted by name, lessons by start time.
"""

import unicodedata
from typing import Any

from lesson_ledger.models.actions import (
    AddLesson,
    AddStudent,
    DeleteLesson,
    DeleteStudent,
    LedgerAction,
    SetState,
    UpdateLesson,
    UpdateSettings,
    UpdateStudent,
)
from lesson_ledger.models.ledger import LedgerState, Lesson, Student


def name_sort_key(name: str) -> tuple[str, str]:
    """
    Collation key for student names.

    Compares case- and accent-insensitively first ("Ёлкин" next to
    "Елисеев", "Émile" next to "Emma"), using the accented form only to
    break ties. Python's sort is stable, so equal keys keep insertion order.
    """
    folded = unicodedata.normalize("NFKD", name).casefold()
    base = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return base, folded


def sort_students(students: list[Student]) -> list[Student]:
    return sorted(students, key=lambda student: name_sort_key(student.name))


def sort_lessons(lessons: list[Lesson]) -> list[Lesson]:
    return sorted(lessons, key=lambda lesson: lesson.start)


def _patch(model, patch: dict[str, Any]):
    """Merge ``patch`` into a frozen model, ignoring unknown fields."""
    update = {key: value for key, value in patch.items() if key in type(model).model_fields}
    if not update:
        return model
    return model.model_copy(update=update)


def reduce(state: LedgerState, action: LedgerAction) -> LedgerState:
    """Apply one action and return the resulting state."""
    if isinstance(action, AddStudent):
        students = sort_students([*state.students, action.student])
        return state.model_copy(update={"students": students})

    if isinstance(action, UpdateStudent):
        if state.get_student(action.student_id) is None:
            return state
        students = [
            _patch(student, action.patch) if student.id == action.student_id else student
            for student in state.students
        ]
        return state.model_copy(update={"students": students})

    if isinstance(action, DeleteStudent):
        if state.get_student(action.student_id) is None:
            return state
        students = [s for s in state.students if s.id != action.student_id]
        lessons = [lesson for lesson in state.lessons if lesson.student_id != action.student_id]
        return state.model_copy(update={"students": students, "lessons": lessons})

    if isinstance(action, AddLesson):
        lessons = sort_lessons([*state.lessons, action.lesson])
        return state.model_copy(update={"lessons": lessons})

    if isinstance(action, UpdateLesson):
        if state.get_lesson(action.lesson_id) is None:
            return state
        lessons = sort_lessons([
            _patch(lesson, action.patch) if lesson.id == action.lesson_id else lesson
            for lesson in state.lessons
        ])
        return state.model_copy(update={"lessons": lessons})

    if isinstance(action, DeleteLesson):
        if state.get_lesson(action.lesson_id) is None:
            return state
        lessons = [lesson for lesson in state.lessons if lesson.id != action.lesson_id]
        return state.model_copy(update={"lessons": lessons})

    if isinstance(action, UpdateSettings):
        settings = _patch(state.settings, action.patch)
        if settings is state.settings:
            return state
        return state.model_copy(update={"settings": settings})

    if isinstance(action, SetState):
        return action.state

    return state
