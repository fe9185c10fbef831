"""
API endpoint tests for all routes.
Uses in-memory SQLite + dependency-overridden FastAPI test client.
"""
import io

from openpyxl import Workbook
from sqlalchemy import select

from mealcheck.models.applicant import Applicant
from mealcheck.models.checkin import CheckIn
from mealcheck.models.student import Student
from mealcheck.utils.helpers import get_current_month, get_today


def _roster_bytes(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================== HEALTH / ROOT =====================


async def test_root(unauth_client):
    r = await unauth_client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


async def test_health(unauth_client):
    r = await unauth_client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


# ===================== AUTH =====================


async def test_login_success(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/admin/auth/login",
        data={"username": "staff", "password": "staffpass"},
    )
    assert r.status_code == 200
    assert "access_token" in r.json()


async def test_login_wrong_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/admin/auth/login",
        data={"username": "staff", "password": "wrong"},
    )
    assert r.status_code == 401


async def test_init_refused_when_admin_exists(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/admin/auth/init",
        json={"username": "second", "password": "pass"},
    )
    assert r.status_code == 409


async def test_init_first_admin(unauth_client):
    r = await unauth_client.post(
        "/api/admin/auth/init",
        json={"username": "first", "password": "pass"},
    )
    assert r.status_code == 200
    assert r.json()["username"] == "first"


async def test_get_me(client):
    r = await client.get("/api/admin/auth/me")
    assert r.status_code == 200
    assert r.json()["username"] == "staff"


async def test_access_token_expiry_is_in_the_future():
    from datetime import datetime, timedelta, timezone

    from jose import jwt

    from mealcheck.api.auth import create_access_token, settings

    token = create_access_token(data={"sub": "1"}, expires_delta=timedelta(minutes=5))
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    now = datetime.now(timezone.utc)
    assert now + timedelta(minutes=4) < expires <= now + timedelta(minutes=5, seconds=5)


async def test_protected_route_no_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/admin/students/")
    assert r.status_code == 401


async def test_change_password(client):
    r = await client.post(
        "/api/admin/auth/change-password",
        json={"current_password": "staffpass", "new_password": "newpass"},
    )
    assert r.status_code == 200

    r = await client.post(
        "/api/admin/auth/login",
        data={"username": "staff", "password": "newpass"},
    )
    assert r.status_code == 200


async def test_change_password_wrong_current(client):
    r = await client.post(
        "/api/admin/auth/change-password",
        json={"current_password": "nope", "new_password": "newpass"},
    )
    assert r.status_code == 401


async def test_change_username(client):
    r = await client.post(
        "/api/admin/auth/change-username",
        json={"current_password": "staffpass", "new_username": "kitchen"},
    )
    assert r.status_code == 200
    assert r.json()["new_username"] == "kitchen"


# ===================== KIOSK CHECK =====================


async def test_check_applicant_then_duplicate(unauth_client, db_session, seed_data):
    db_session.add(Applicant(student_id="20701", month=get_current_month()))
    await db_session.commit()

    r = await unauth_client.post("/api/nfc/check", json={"nfc_id": "1234567890"})
    assert r.status_code == 200
    first = r.json()
    assert first["is_applicant"] is True
    assert first["is_duplicate"] is False
    assert first["check_count"] == 1
    assert first["student_info"]["grade"] == 2
    assert first["student_info"]["class"] == 7
    assert first["student_info"]["number"] == 1

    r = await unauth_client.post("/api/nfc/check", json={"nfc_id": "1234567890"})
    second = r.json()
    assert second["is_applicant"] is True
    assert second["is_duplicate"] is True
    assert second["check_count"] == 2
    assert second["first_check_in_time"] == first["check_time"]


async def test_check_non_applicant_never_duplicate(unauth_client, seed_data):
    for expected_count in (1, 2, 3):
        r = await unauth_client.post("/api/nfc/check", json={"student_id": "20701"})
        assert r.status_code == 200
        body = r.json()
        assert body["is_applicant"] is False
        assert body["is_duplicate"] is False
        assert body["check_count"] == expected_count


async def test_check_unknown_card_needs_registration(unauth_client, seed_data):
    r = await unauth_client.post("/api/nfc/check", json={"nfc_id": "9999999999"})
    assert r.status_code == 404
    detail = r.json()["detail"]
    assert detail["needs_registration"] is True
    assert detail["nfc_id"] == "9999999999"


async def test_check_unknown_student_id_creates_cardless_student(unauth_client, db_session):
    r = await unauth_client.post("/api/nfc/check", json={"student_id": "31024"})
    assert r.status_code == 200

    result = await db_session.execute(select(Student).where(Student.student_id == "31024"))
    student = result.scalar_one()
    assert student.has_card is False
    assert student.nfc_id is None


async def test_check_invalid_input(unauth_client):
    r = await unauth_client.post("/api/nfc/check", json={"nfc_id": "12345"})
    assert r.status_code == 400

    r = await unauth_client.post("/api/nfc/check", json={"student_id": "2070a"})
    assert r.status_code == 400

    r = await unauth_client.post("/api/nfc/check", json={})
    assert r.status_code == 400


async def test_check_student_exists(unauth_client, seed_data):
    r = await unauth_client.post("/api/nfc/check-student", json={"student_id": "20701"})
    assert r.status_code == 200
    assert r.json()["exists"] is True

    r = await unauth_client.post("/api/nfc/check-student", json={"student_id": "30101"})
    assert r.json()["exists"] is False


async def test_zero_part_student_id_through_kiosk_and_listings(client, db_session):
    # Imported records can carry ids such as 30100 (class 10, number 0)
    db_session.add(Student(nfc_id="5555555555", has_card=True, student_id="30100"))
    await db_session.commit()

    r = await client.post("/api/nfc/check", json={"nfc_id": "5555555555"})
    assert r.status_code == 200
    info = r.json()["student_info"]
    assert (info["grade"], info["class"], info["number"]) == (3, 10, 0)

    r = await client.post("/api/nfc/check", json={"student_id": "00000"})
    assert r.status_code == 200

    r = await client.get("/api/admin/students/")
    assert r.status_code == 200
    assert [s["student_id"] for s in r.json()] == ["00000", "20701", "30100"]

    r = await client.get("/api/admin/checkins/")
    assert r.status_code == 200
    assert sorted(c["student_id"] for c in r.json()["check_ins"]) == ["00000", "30100"]


# ===================== KIOSK REGISTRATION =====================


async def test_register_new_card(unauth_client, db_session):
    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "5555555555", "student_id": "10203", "password": "4321",
    })
    assert r.status_code == 200
    assert r.json()["merged"] is False
    assert r.json()["student"]["has_card"] is True


async def test_register_duplicate_card(unauth_client, seed_data):
    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "1234567890", "student_id": "10203", "password": "4321",
    })
    assert r.status_code == 409


async def test_register_card_merges_with_matching_pin(unauth_client, db_session, seed_data):
    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "7777777777", "student_id": "20701", "password": "1234",
    })
    assert r.status_code == 200
    assert r.json()["merged"] is True

    await db_session.refresh(seed_data["student"])
    assert seed_data["student"].nfc_id == "7777777777"


async def test_register_card_wrong_pin(unauth_client, seed_data):
    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "7777777777", "student_id": "20701", "password": "0000",
    })
    assert r.status_code == 401


async def test_register_card_for_cardless_student(unauth_client, db_session):
    await unauth_client.post("/api/nfc/check", json={"student_id": "31024"})

    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "8888888888", "student_id": "31024", "password": "2468",
    })
    assert r.status_code == 200
    assert r.json()["merged"] is True

    r = await unauth_client.post("/api/nfc/check", json={"nfc_id": "8888888888"})
    assert r.status_code == 200
    assert r.json()["student_id"] == "31024"


async def test_register_cardless_duplicate_student(unauth_client, seed_data):
    r = await unauth_client.post("/api/nfc/register", json={
        "student_id": "20701", "password": "1234",
    })
    assert r.status_code == 409


async def test_register_rejects_bad_pin(unauth_client):
    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "5555555555", "student_id": "10203", "password": "12",
    })
    assert r.status_code == 400


async def test_change_pin_with_card(unauth_client, db_session, seed_data):
    r = await unauth_client.post("/api/nfc/change-password", json={
        "nfc_id": "1234567890", "new_password": "9999",
    })
    assert r.status_code == 200

    r = await unauth_client.post("/api/nfc/register", json={
        "nfc_id": "6666666666", "student_id": "20701", "password": "9999",
    })
    assert r.status_code == 200


async def test_change_pin_unknown_card(unauth_client):
    r = await unauth_client.post("/api/nfc/change-password", json={
        "nfc_id": "1111111111", "new_password": "9999",
    })
    assert r.status_code == 404


# ===================== APPLICANTS =====================


async def test_add_and_list_applicants(client):
    r = await client.post("/api/admin/applicants/", json={"student_id": "20701"})
    assert r.status_code == 200
    assert r.json()["month"] == get_current_month()

    r = await client.get("/api/admin/applicants/")
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["applicants"][0]["student_id"] == "20701"


async def test_add_applicant_twice_conflicts(client):
    await client.post("/api/admin/applicants/", json={"student_id": "20701"})
    r = await client.post("/api/admin/applicants/", json={"student_id": "20701"})
    assert r.status_code == 409


async def test_add_applicant_invalid_id(client):
    r = await client.post("/api/admin/applicants/", json={"student_id": "123"})
    assert r.status_code == 400


async def test_remove_applicant(client):
    await client.post("/api/admin/applicants/", json={"student_id": "20701"})
    r = await client.delete("/api/admin/applicants/20701")
    assert r.status_code == 200

    r = await client.delete("/api/admin/applicants/20701")
    assert r.status_code == 404


async def test_upload_roster_merge(client, db_session):
    content = _roster_bytes([
        ["Name", "Student ID"],
        ["Kim", "20701"],
        ["Lee", 20702],
        ["Park", "20701"],
        ["Note", "10001 is not an id"],
    ])
    files = {"file": ("roster.xlsx", content, XLSX_TYPE)}

    r = await client.post("/api/admin/applicants/upload", files=files, data={"replace_existing": "false"})
    assert r.status_code == 200
    assert r.json()["count"] == 2

    # Same roster again adds nothing
    r = await client.post("/api/admin/applicants/upload", files=files, data={"replace_existing": "false"})
    assert r.status_code == 200
    assert r.json()["count"] == 0

    result = await db_session.execute(select(Applicant).where(Applicant.month == get_current_month()))
    assert len(result.scalars().all()) == 2


async def test_upload_roster_replace(client, db_session):
    await client.post("/api/admin/applicants/", json={"student_id": "30101"})

    content = _roster_bytes([["20701"], ["20702"]])
    r = await client.post(
        "/api/admin/applicants/upload",
        files={"file": ("roster.xlsx", content, XLSX_TYPE)},
        data={"replace_existing": "true"},
    )
    assert r.status_code == 200

    result = await db_session.execute(select(Applicant.student_id).where(Applicant.month == get_current_month()))
    assert sorted(result.scalars().all()) == ["20701", "20702"]


async def test_upload_roster_keeps_ids_with_zero_parts(client, db_session):
    content = _roster_bytes([["20701", "00101", "30100"]])
    r = await client.post(
        "/api/admin/applicants/upload",
        files={"file": ("roster.xlsx", content, XLSX_TYPE)},
    )
    assert r.status_code == 200
    assert r.json()["count"] == 3
    assert r.json()["errors"] == []

    r = await client.get("/api/admin/applicants/")
    assert [a["student_id"] for a in r.json()["applicants"]] == ["00101", "20701", "30100"]


async def test_upload_roster_without_ids(client):
    content = _roster_bytes([["no ids here"]])
    r = await client.post(
        "/api/admin/applicants/upload",
        files={"file": ("roster.xlsx", content, XLSX_TYPE)},
    )
    assert r.status_code == 400


async def test_upload_rejects_non_excel(client):
    r = await client.post(
        "/api/admin/applicants/upload",
        files={"file": ("roster.csv", b"20701\n", "text/csv")},
    )
    assert r.status_code == 400


async def test_upload_rejects_legacy_xls_with_hint(client):
    r = await client.post(
        "/api/admin/applicants/upload",
        files={"file": ("roster.xls", b"\xd0\xcf\x11\xe0", "application/vnd.ms-excel")},
    )
    assert r.status_code == 400
    assert ".xls" in r.json()["detail"]
    assert ".xlsx" in r.json()["detail"]


# ===================== STUDENTS =====================


async def test_list_students(client):
    r = await client.get("/api/admin/students/")
    assert r.status_code == 200
    students = r.json()
    assert len(students) == 1
    assert students[0]["student_id"] == "20701"
    assert students[0]["has_password"] is True


async def test_create_student(client):
    r = await client.post("/api/admin/students/", json={"student_id": "30512"})
    assert r.status_code == 200
    assert r.json()["has_card"] is False
    assert r.json()["student_info"]["class"] == 5


async def test_create_student_conflicts(client):
    r = await client.post("/api/admin/students/", json={"student_id": "20701"})
    assert r.status_code == 409

    r = await client.post("/api/admin/students/", json={"student_id": "30512", "nfc_id": "1234567890"})
    assert r.status_code == 409


async def test_update_student_card(client):
    r = await client.put("/api/admin/students/20701", json={"new_nfc_id": "2222222222"})
    assert r.status_code == 200
    assert r.json()["nfc_id"] == "2222222222"


async def test_update_student_nothing_to_change(client):
    r = await client.put("/api/admin/students/20701", json={})
    assert r.status_code == 400


async def test_update_student_card_taken(client, db_session):
    db_session.add(Student(student_id="30101", nfc_id="3333333333", has_card=True))
    await db_session.commit()

    r = await client.put("/api/admin/students/20701", json={"new_nfc_id": "3333333333"})
    assert r.status_code == 409


async def test_update_unknown_student(client):
    r = await client.put("/api/admin/students/39999", json={"new_password": "1111"})
    assert r.status_code == 404


async def test_delete_student_cascades_check_ins_not_applicants(client, db_session):
    db_session.add(Applicant(student_id="20701", month=get_current_month()))
    await db_session.commit()
    await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})
    await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})

    r = await client.delete("/api/admin/students/20701")
    assert r.status_code == 200
    assert r.json()["removed_check_ins"] == 2

    result = await db_session.execute(select(CheckIn).where(CheckIn.student_id == "20701"))
    assert result.scalars().all() == []
    result = await db_session.execute(select(Applicant).where(Applicant.student_id == "20701"))
    assert len(result.scalars().all()) == 1


# ===================== CHECK-INS =====================


async def test_check_in_log_marks_duplicates(client, db_session):
    db_session.add(Applicant(student_id="20701", month=get_current_month()))
    await db_session.commit()

    await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})
    await client.post("/api/nfc/check", json={"student_id": "30101"})
    await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})

    r = await client.get("/api/admin/checkins/", params={"date": get_today()})
    assert r.status_code == 200
    data = r.json()
    assert data["count"] == 3
    assert data["duplicates"] == 1
    assert data["students"] == 2
    assert [(c["student_id"], c["is_duplicate"], c["check_count"]) for c in data["check_ins"]] == [
        ("20701", False, 1),
        ("30101", False, 1),
        ("20701", True, 2),
    ]


async def test_check_in_log_defaults_to_today(client):
    r = await client.get("/api/admin/checkins/")
    assert r.status_code == 200
    assert r.json()["date"] == get_today()


async def test_check_in_log_bad_date(client):
    r = await client.get("/api/admin/checkins/", params={"date": "2025-13-40"})
    assert r.status_code == 400


async def test_cancel_check_in(client):
    r = await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})
    check_in_id = r.json()["check_in_id"]

    r = await client.delete(f"/api/admin/checkins/{check_in_id}")
    assert r.status_code == 200

    r = await client.delete(f"/api/admin/checkins/{check_in_id}")
    assert r.status_code == 404


# ===================== BACKUPS =====================


async def test_create_and_list_backups(client, backup_manager):
    r = await client.post("/api/admin/backups/")
    assert r.status_code == 200
    filename = r.json()["filename"]
    assert filename.startswith("mealcheck.db.backup_")

    r = await client.get("/api/admin/backups/")
    assert r.status_code == 200
    assert r.json()["count"] == 1
    assert r.json()["backups"][0]["filename"] == filename


async def test_restore_backup(client, backup_manager):
    import sqlite3

    r = await client.post("/api/admin/backups/")
    filename = r.json()["filename"]

    conn = sqlite3.connect(str(backup_manager.db_path))
    conn.execute("UPDATE marker SET value = 'changed'")
    conn.commit()
    conn.close()

    r = await client.post(f"/api/admin/backups/{filename}/restore")
    assert r.status_code == 200
    assert r.json()["temp_backup"].startswith("mealcheck.db.backup_before_restore_")

    conn = sqlite3.connect(str(backup_manager.db_path))
    assert conn.execute("SELECT value FROM marker").fetchone()[0] == "original"
    conn.close()


async def test_restore_missing_backup(client):
    r = await client.post("/api/admin/backups/mealcheck.db.backup_2000-01-01_00-00-00/restore")
    assert r.status_code == 404


async def test_delete_backup(client):
    r = await client.post("/api/admin/backups/")
    filename = r.json()["filename"]

    r = await client.delete(f"/api/admin/backups/{filename}")
    assert r.status_code == 200

    r = await client.get("/api/admin/backups/")
    assert r.json()["count"] == 0


async def test_delete_backup_rejects_foreign_names(client):
    r = await client.delete("/api/admin/backups/passwords.txt")
    assert r.status_code == 400


# ===================== RESET =====================


async def test_reset_keeps_admins(client, db_session):
    db_session.add(Applicant(student_id="20701", month=get_current_month()))
    await db_session.commit()
    await client.post("/api/nfc/check", json={"nfc_id": "1234567890"})

    r = await client.delete("/api/admin/reset/")
    assert r.status_code == 200
    assert r.json()["students"] == 1
    assert r.json()["check_ins"] == 1

    r = await client.get("/api/admin/students/")
    assert r.status_code == 200
    assert r.json() == []


# ===================== CAMERA =====================


async def test_capture_and_fetch_photo(unauth_client, monkeypatch, tmp_path):
    from mealcheck.api import camera
    monkeypatch.setattr(camera.settings, "PHOTO_DIR", str(tmp_path))

    r = await unauth_client.post(
        "/api/camera/capture",
        files={"image": ("snap.jpg", b"\xff\xd8fakejpeg", "image/jpeg")},
        data={"date": "2025-11-03", "student_id": "20701"},
    )
    assert r.status_code == 200
    photo_path = r.json()["photo_path"]
    assert photo_path.startswith("2025-11-03/20701_")

    r = await unauth_client.get("/api/camera/photo", params={"path": photo_path})
    assert r.status_code == 200
    assert r.content == b"\xff\xd8fakejpeg"


async def test_photo_path_traversal_denied(unauth_client, monkeypatch, tmp_path):
    from mealcheck.api import camera
    monkeypatch.setattr(camera.settings, "PHOTO_DIR", str(tmp_path / "camera"))

    r = await unauth_client.get("/api/camera/photo", params={"path": "../secret.txt"})
    assert r.status_code == 403


async def test_photo_missing(unauth_client, monkeypatch, tmp_path):
    from mealcheck.api import camera
    monkeypatch.setattr(camera.settings, "PHOTO_DIR", str(tmp_path))

    r = await unauth_client.get("/api/camera/photo", params={"path": "2025-11-03/none.jpg"})
    assert r.status_code == 404


async def test_capture_rejects_bad_student_id(unauth_client, monkeypatch, tmp_path):
    from mealcheck.api import camera
    monkeypatch.setattr(camera.settings, "PHOTO_DIR", str(tmp_path))

    r = await unauth_client.post(
        "/api/camera/capture",
        files={"image": ("snap.jpg", b"\xff\xd8", "image/jpeg")},
        data={"date": "2025-11-03", "student_id": "abc"},
    )
    assert r.status_code == 400
