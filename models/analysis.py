"""models/analysis.py — In-memory record of one fetched and inspected IPA."""
import datetime
from dataclasses import dataclass, field


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class AnalysisRecord:
    identifier: str
    origin: str = ""                 # URL the IPA was fetched from
    bundle_id: str = ""              # CFBundleIdentifier, empty if extraction failed
    app_name: str = ""
    created_at: datetime.datetime = field(default_factory=_utcnow)

    def to_dict(self):
        return {
            "uuid": self.identifier,
            "origin": self.origin,
            "bundle_id": self.bundle_id,
            "app_name": self.app_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AnalysisRecord {self.identifier} bundle={self.bundle_id} origin={self.origin}>"
