"""
config.py — Flask configuration classes for the IPA re-signing service.
"""
import os


def _default_base_url(port: str) -> str:
    return os.environ.get("BASE_URL") or f"http://localhost:{port}"


class BaseConfig:
    """Base configuration shared by all environments."""
    PORT = os.environ.get("PORT", "8080")
    BASE_URL = _default_base_url(PORT).rstrip("/")

    MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", 64))
    MAX_CONTENT_LENGTH = MAX_UPLOAD_MB * 1024 * 1024  # bytes

    OUTPUT_FOLDER = os.environ.get("OUTPUT_FOLDER", os.path.join(".", "output"))

    DOWNLOAD_TIMEOUT = int(os.environ.get("DOWNLOAD_TIMEOUT", 60))
    DOWNLOAD_CHUNK_SIZE = 65536

    SIGNER_BINARY = os.environ.get("SIGNER_BINARY", "zsign")
    SIGNER_COMPRESSION_LEVEL = 9

    CORS_ORIGINS = "*"

    VERSION = "1.0.0"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    TESTING = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False


class TestingConfig(BaseConfig):
    DEBUG = True
    TESTING = True
    BASE_URL = "http://testserver"
    OUTPUT_FOLDER = "/tmp/resign_test_output"


config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
