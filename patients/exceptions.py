# patients/exceptions.py


class PatientError(Exception):
    """Base class for refused patient workflow actions"""


class VisitStageError(PatientError):
    """The visit is not at the stage the action needs"""


class VisitOwnershipError(PatientError):
    """The visit belongs to another doctor"""

    def __init__(self, visit, doctor):
        self.visit = visit
        self.doctor = doctor
        super().__init__('This visit is not assigned to you.')


class PaymentError(PatientError):
    """A payment amount the visit cannot take"""
