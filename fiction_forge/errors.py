# fiction_forge/errors.py


class ForgeError(Exception):
    pass


class RequestValidationFailure(ForgeError):
    """Missing or malformed request field. Raised before any AI call."""


class AuthFailure(ForgeError):
    pass


class AiCallFailure(ForgeError):
    """The completion backend failed or returned nothing usable."""


class ParseFailure(ForgeError):
    """
    The AI response could not be read as the expected record.

    Only a bounded prefix of the raw text travels with the error; the full
    text goes to the server log.
    """

    def __init__(self, message: str, *, raw_prefix: str = "", session_id: str = ""):
        super().__init__(message)
        self.raw_prefix = raw_prefix
        self.session_id = session_id


class PersistenceFailure(ForgeError):
    pass


class TemplateFailure(ForgeError):
    pass


class GenerationCancelled(ForgeError):
    pass
