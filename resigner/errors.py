"""
resigner/errors.py — Exception hierarchy for the signing service.

Every failure the core can report derives from ResignerError, which carries
the HTTP status the API layer should answer with and a message that is safe
to show to a client (no filesystem paths, no credential material).
"""


class ResignerError(Exception):
    """Base class for all service-level failures."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = str(self)

    def to_dict(self) -> dict:
        return {"error": self.message}


class FetchError(ResignerError):
    """Network or remote failure while fetching a source IPA."""

    status_code = 502
    default_message = "Failed to download IPA file"


class AnalysisError(ResignerError):
    """The IPA could not be opened or its Info.plist could not be decoded."""

    status_code = 422
    default_message = "Failed to extract IPA info"


class MetadataNotFound(AnalysisError):
    default_message = "Info.plist not found in IPA"


class MetadataFieldMissing(AnalysisError):
    default_message = "CFBundleIdentifier not found or not a string"


class UnknownIdentifier(ResignerError):
    status_code = 400
    default_message = "Invalid ipa_uuid, IPA not found"


class MissingMetadata(ResignerError):
    """Bundle id or app name still empty after overrides and extraction."""

    status_code = 400
    default_message = "Bundle ID and App Name must be provided"


class MissingCredentialPassword(ResignerError):
    status_code = 400
    default_message = "Missing p12_password parameter"


class StorageError(ResignerError):
    default_message = "Failed to write to local storage"


class SigningFailed(ResignerError):
    """The signer exited non-zero; output holds its stdout/stderr verbatim."""

    default_message = "Signing failed"

    def __init__(self, output: str = "", message: str = None):
        super().__init__(message)
        self.output = output

    def to_dict(self) -> dict:
        return {"error": self.message, "output": self.output}


class SigningOutputMissing(ResignerError):
    default_message = "Output file was not generated"


class InvalidArtifactName(ResignerError):
    status_code = 400
    default_message = "Unknown artifact name"


class DuplicateIdentifier(ResignerError):
    """Two records share an identifier; allocation should make this impossible."""

    default_message = "Identifier already present in the analysis index"
