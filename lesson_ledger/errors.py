"""Domain exceptions raised inside the action layer."""


class LedgerError(Exception):
    """Base exception for ledger business rules."""
    pass


class PackageNotFoundError(LedgerError):
    """A lesson refers to a package the student does not have."""

    def __init__(self, student_id: str, package_id: str):
        self.student_id = student_id
        self.package_id = package_id
        super().__init__(f"Package {package_id} not found for student {student_id}")


class PackageExhaustedError(LedgerError):
    """A lesson slot was needed from a package that has none left."""

    def __init__(self, student_id: str, package_id: str):
        self.student_id = student_id
        self.package_id = package_id
        super().__init__(f"Package {package_id} has no lessons left")
