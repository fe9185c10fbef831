"""
Terminal kiosk - reads card tags (keyboard-wedge reader) or typed student
ids from stdin and talks to the check-in API.

Usage:
    python scripts/kiosk_terminal.py [base_url]
"""
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from mealcheck.kiosk import ActionKind, KioskStateMachine


def _post(client: httpx.Client, path: str, payload: dict) -> tuple[int, dict]:
    try:
        r = client.post(path, json=payload)
    except httpx.HTTPError as e:
        return 503, {"detail": f"Server unreachable: {e}"}
    try:
        return r.status_code, r.json()
    except ValueError:
        return r.status_code, {"detail": r.text}


def run(base_url: str):
    machine = KioskStateMachine()
    print("Tag a card or type a student id (Ctrl+C to quit)")

    with httpx.Client(base_url=base_url, timeout=5.0) as client:
        while True:
            try:
                line = input("> ")
            except (EOFError, KeyboardInterrupt):
                print()
                return

            action = machine.feed(line)
            while action.kind in (ActionKind.CHECK, ActionKind.REGISTER):
                if action.kind == ActionKind.CHECK:
                    status, body = _post(client, "/api/nfc/check", action.payload)
                    action = machine.on_check_result(status, body)
                else:
                    status, body = _post(client, "/api/nfc/register", action.payload)
                    action = machine.on_register_result(status, body)

            if action.kind == ActionKind.SHOW and "admitted" in action.payload:
                if action.payload.get("is_duplicate"):
                    mark = "!"
                elif action.payload["admitted"]:
                    mark = "O"
                else:
                    mark = "X"
                print(f"[{mark}] {action.message}")
            else:
                print(action.message)


if __name__ == "__main__":
    run(sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:8000")
