"""
Domain exceptions raised by the service layer.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""


class MealCheckError(Exception):
    """Base class for service-layer failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CardNotRegistered(MealCheckError):
    """A card was tagged that no student has registered yet"""

    def __init__(self, nfc_id: str):
        super().__init__("This card is not registered")
        self.nfc_id = nfc_id


class RosterFormatError(MealCheckError):
    """The uploaded roster could not be read as a spreadsheet"""


class BackupUnavailable(MealCheckError):
    """Backups need a file-backed SQLite database"""


class InvalidBackupName(MealCheckError):
    def __init__(self, filename: str):
        super().__init__(f"'{filename}' is not a backup file name")
        self.filename = filename


class BackupNotFound(MealCheckError):
    def __init__(self, filename: str):
        super().__init__(f"Backup '{filename}' not found")
        self.filename = filename


class CheckInNotFound(MealCheckError):
    def __init__(self, check_in_id: int):
        super().__init__(f"Check-in {check_in_id} not found")
        self.check_in_id = check_in_id
