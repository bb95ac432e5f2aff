"""
Reducer actions.

One frozen model per state transition, tagged with a ``type`` literal so
the union can be dispatched exhaustively and serialized for logs.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from lesson_ledger.models.ledger import LedgerState, Lesson, Student


class LedgerAction(BaseModel):
    model_config = ConfigDict(frozen=True)


class AddStudent(LedgerAction):
    type: Literal["ADD_STUDENT"] = "ADD_STUDENT"
    student: Student


class UpdateStudent(LedgerAction):
    type: Literal["UPDATE_STUDENT"] = "UPDATE_STUDENT"
    student_id: str
    patch: dict[str, Any]


class DeleteStudent(LedgerAction):
    type: Literal["DELETE_STUDENT"] = "DELETE_STUDENT"
    student_id: str


class AddLesson(LedgerAction):
    type: Literal["ADD_LESSON"] = "ADD_LESSON"
    lesson: Lesson


class UpdateLesson(LedgerAction):
    type: Literal["UPDATE_LESSON"] = "UPDATE_LESSON"
    lesson_id: str
    patch: dict[str, Any]


class DeleteLesson(LedgerAction):
    type: Literal["DELETE_LESSON"] = "DELETE_LESSON"
    lesson_id: str


class UpdateSettings(LedgerAction):
    type: Literal["UPDATE_SETTINGS"] = "UPDATE_SETTINGS"
    patch: dict[str, Any]


class SetState(LedgerAction):
    """Replace the whole state. ``state`` must already be migrated."""
    type: Literal["SET_STATE"] = "SET_STATE"
    state: LedgerState


Action = Annotated[
    Union[
        AddStudent,
        UpdateStudent,
        DeleteStudent,
        AddLesson,
        UpdateLesson,
        DeleteLesson,
        UpdateSettings,
        SetState,
    ],
    Field(discriminator="type"),
]
