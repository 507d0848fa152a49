"""
Errors raised by the admission lifecycle services.

Every error is raised before anything is committed, carries the context an
operator needs to act on it and maps to one HTTP status in the API layer.
Only ConcurrentModificationError is meant to be retried (after a refetch).
"""


class AdmissionError(Exception):
    """Base exception for admission lifecycle errors."""

    default_message = "Admission operation failed"
    error_code = "ADMISSION_ERROR"
    status_code = 400

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def as_dict(self):
        return {"error": self.error_code, "message": self.message, "details": self.details}


class InvalidTransitionError(AdmissionError):
    """Requested status edge is not part of the workflow graph."""

    error_code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current_status, requested_status, message=None, details=None):
        self.current_status = current_status
        self.requested_status = requested_status
        payload = {"current_status": str(current_status), "requested_status": str(requested_status)}
        payload.update(details or {})
        super().__init__(
            message or f"Cannot move application from '{current_status}' to '{requested_status}'.",
            payload,
        )


class ConcurrentModificationError(AdmissionError):
    error_code = "VERSION_CONFLICT"
    status_code = 409

    def __init__(self, application_id, expected_version, current_version=None):
        super().__init__(
            "Application was modified by another request; reload and retry.",
            {
                "application_id": str(application_id),
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )


class CapacityExceededError(AdmissionError):
    error_code = "CAPACITY_EXCEEDED"
    status_code = 409

    def __init__(self, class_name, section, total_seats=None, filled_seats=None):
        super().__init__(
            f"No seats available in {class_name} section {section}.",
            {
                "class": class_name,
                "section": section,
                "total_seats": total_seats,
                "filled_seats": filled_seats,
            },
        )


class NoSeatsToReleaseError(AdmissionError):
    error_code = "NO_SEATS_TO_RELEASE"
    status_code = 409

    def __init__(self, class_name, section):
        super().__init__(
            f"{class_name} section {section} has no filled seats to release.",
            {"class": class_name, "section": section},
        )


class RollNumberConflictError(AdmissionError):
    error_code = "ROLL_NUMBER_CONFLICT"
    status_code = 409

    def __init__(self, class_name, section, roll_number):
        super().__init__(
            f"Roll number {roll_number} is already taken in {class_name} section {section}.",
            {"class": class_name, "section": section, "roll_number": roll_number},
        )


class AlreadyWaitlistedError(AdmissionError):
    error_code = "ALREADY_WAITLISTED"
    status_code = 409

    def __init__(self, application_id, class_name, position=None):
        super().__init__(
            f"Application is already on the {class_name} waitlist.",
            {"application_id": str(application_id), "class": class_name, "position": position},
        )


class ProtectedApplicationError(AdmissionError):
    error_code = "PROTECTED_APPLICATION"
    status_code = 409


class NotFoundError(AdmissionError):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource, identifier):
        super().__init__(
            f"{resource} '{identifier}' not found.",
            {"resource": resource, "id": str(identifier)},
        )
