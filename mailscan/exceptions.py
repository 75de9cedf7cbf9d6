class MailscanError(Exception):
    """Base class for collaborator errors. The scorer itself never raises."""


class NoEmailOpenError(MailscanError):
    def __init__(self, message: str = "no email currently open"):
        super().__init__(message)


class ScanStoreError(MailscanError):
    """A scan record could not be written to the store."""


class PrivacyViolationError(MailscanError):
    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Privacy violation: content not allowed ({', '.join(self.fields)})")
