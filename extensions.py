"""
extensions.py — Process-wide service objects, bound to the app in create_app().

The analysis index lives for the life of the process; nothing tears it down.
"""
from flask import current_app

from resigner import SigningOrchestrator
from resigner.index import AnalysisIndex
from resigner.signer import ZsignSigner
from resigner.store import ArtifactStore

store = ArtifactStore()
index = AnalysisIndex()
signer = ZsignSigner()


def init_app(app):
    store.init_app(app)
    index.init_app(app)
    signer.init_app(app)
    app.extensions["orchestrator"] = SigningOrchestrator.from_config(
        app.config, store, index, signer
    )


def get_orchestrator() -> SigningOrchestrator:
    return current_app.extensions["orchestrator"]
