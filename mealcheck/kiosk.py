"""
Kiosk input state machine.

The kiosk reads one line at a time from a keyboard-wedge card reader or
the keypad. States:

    IDLE                      waiting for a card tag or a student id
    AWAITING_SECONDARY_INPUT  an unregistered card was tagged; collecting
                              the student id and then a 4-digit PIN
    DISPLAYING_RESULT         showing admit / reject until dismissed

The machine only decides what to do with input; sending requests and
drawing the screen belong to the caller (see scripts/kiosk_terminal.py).
"""
import enum
from dataclasses import dataclass, field
from typing import Optional

from mealcheck.utils.validators import is_valid_nfc_id, is_valid_password, is_valid_student_id


class KioskState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_SECONDARY_INPUT = "awaiting_secondary_input"
    DISPLAYING_RESULT = "displaying_result"


class ActionKind(str, enum.Enum):
    CHECK = "check"              # POST /api/nfc/check
    REGISTER = "register"        # POST /api/nfc/register
    PROMPT = "prompt"            # ask the user for more input
    SHOW = "show"                # put a message on screen


@dataclass
class KioskAction:
    kind: ActionKind
    payload: dict = field(default_factory=dict)
    message: str = ""


class InvalidTransition(Exception):
    pass


class KioskStateMachine:
    def __init__(self):
        self.state = KioskState.IDLE
        self.pending_nfc_id: Optional[str] = None
        self.pending_student_id: Optional[str] = None
        self.last_result: Optional[dict] = None

    def _reset_pending(self):
        self.pending_nfc_id = None
        self.pending_student_id = None

    def feed(self, line: str) -> KioskAction:
        """Handle one line of input in the current state"""
        text = (line or "").strip()

        if self.state == KioskState.DISPLAYING_RESULT:
            # A new tag while a result is on screen starts the next check
            self.dismiss()

        if self.state == KioskState.IDLE:
            if is_valid_nfc_id(text):
                return KioskAction(ActionKind.CHECK, {"nfc_id": text})
            if is_valid_student_id(text):
                return KioskAction(ActionKind.CHECK, {"student_id": text})
            return KioskAction(ActionKind.SHOW, message="Tag your card or enter a 5-digit student id")

        # AWAITING_SECONDARY_INPUT
        if text.lower() in ("c", "cancel"):
            self.dismiss()
            return KioskAction(ActionKind.SHOW, message="Registration cancelled")

        if self.pending_student_id is None:
            if not is_valid_student_id(text):
                return KioskAction(ActionKind.PROMPT, message="Enter your 5-digit student id")
            self.pending_student_id = text
            return KioskAction(ActionKind.PROMPT, message="Choose a 4-digit PIN")

        if not is_valid_password(text):
            return KioskAction(ActionKind.PROMPT, message="The PIN must be 4 digits")

        return KioskAction(ActionKind.REGISTER, {
            "nfc_id": self.pending_nfc_id,
            "student_id": self.pending_student_id,
            "password": text,
        })

    def on_check_result(self, status_code: int, body: dict) -> KioskAction:
        """Apply the server's answer to a CHECK action"""
        if self.state != KioskState.IDLE:
            raise InvalidTransition(f"check result received in state {self.state.value}")

        detail = body.get("detail") if isinstance(body, dict) else None
        if status_code == 404 and isinstance(detail, dict) and detail.get("needs_registration"):
            self.state = KioskState.AWAITING_SECONDARY_INPUT
            self.pending_nfc_id = detail.get("nfc_id")
            self.pending_student_id = None
            return KioskAction(
                ActionKind.PROMPT,
                message="New card. Enter your 5-digit student id to register it",
            )

        self.state = KioskState.DISPLAYING_RESULT
        self.last_result = body
        if status_code != 200:
            message = detail if isinstance(detail, str) else "Check failed"
            return KioskAction(ActionKind.SHOW, {"admitted": False}, message=message)

        admitted = bool(body.get("is_applicant"))
        return KioskAction(ActionKind.SHOW, {
            "admitted": admitted,
            "is_duplicate": bool(body.get("is_duplicate")),
        }, message=body.get("message", ""))

    def on_register_result(self, status_code: int, body: dict) -> KioskAction:
        """Apply the server's answer to a REGISTER action"""
        if self.state != KioskState.AWAITING_SECONDARY_INPUT:
            raise InvalidTransition(f"register result received in state {self.state.value}")

        if status_code == 200:
            nfc_id = self.pending_nfc_id
            self._reset_pending()
            self.state = KioskState.IDLE
            # Registered cards are checked in straight away
            return KioskAction(ActionKind.CHECK, {"nfc_id": nfc_id}, message=body.get("message", ""))

        detail = body.get("detail") if isinstance(body, dict) else None
        self._reset_pending()
        self.state = KioskState.DISPLAYING_RESULT
        self.last_result = body
        return KioskAction(
            ActionKind.SHOW,
            {"admitted": False},
            message=detail if isinstance(detail, str) else "Registration failed",
        )

    def dismiss(self):
        """Clear the screen and go back to waiting for a tag"""
        self._reset_pending()
        self.last_result = None
        self.state = KioskState.IDLE
