"""Configuration and API key management for B-Roll Scout.

This module handles application settings and Gemini API key storage.
Settings are plain pydantic models that get passed into the pipeline
components at construction time; nothing below the CLI reads the
environment on its own.

Security notes:
- API keys are never logged or printed
- Encrypted file backend uses Fernet symmetric encryption
- Keyring backend leverages OS-level credential storage
"""

import base64
import hashlib
import os
import platform
import secrets
from enum import Enum
from pathlib import Path

import yaml
from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, Field


# =============================================================================
# Exceptions
# =============================================================================


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# =============================================================================
# Enums
# =============================================================================


class KeyStorageBackend(str, Enum):
    """Backend options for storing API keys securely.

    Attributes:
        ENV: Read from environment variable (GEMINI_API_KEY)
        KEYRING: Use system keyring (OS credential manager)
        ENCRYPTED_FILE: Store in Fernet-encrypted local file
    """

    ENV = "env"
    KEYRING = "keyring"
    ENCRYPTED_FILE = "encrypted_file"


# =============================================================================
# Configuration Models
# =============================================================================


class AISettings(BaseModel):
    """Settings for the Gemini model.

    Attributes:
        model_name: The Gemini model to use
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature (0.0-2.0)
        timeout_seconds: Request timeout
        max_retries: Number of retry attempts on transient failure
    """

    model_name: str = "gemini-1.5-flash"
    max_tokens: int = Field(default=4096, ge=100, le=100000)
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    timeout_seconds: int = Field(default=120, ge=10, le=600)
    max_retries: int = Field(default=3, ge=0, le=10)


class PipelineSettings(BaseModel):
    """Locations and limits for a media analysis run.

    Attributes:
        media_dir: Directory scanned recursively for media files
        transcript_dir: Directory holding <stem>.txt transcripts for videos
        cache_path: JSON file holding previously analyzed items
        marketing_path: Marketing context document
        context_excerpt_chars: Prefix of the marketing context sent per file
        frame_offset_seconds: Where in a video the still frame is grabbed
        max_image_dimension: Longest side of images sent for analysis
    """

    media_dir: Path = Path("./media")
    transcript_dir: Path = Path("./transcripts")
    cache_path: Path = Path("./media_cache.json")
    marketing_path: Path = Path("./marketing.md")
    context_excerpt_chars: int = Field(default=1000, ge=0)
    frame_offset_seconds: float = Field(default=5.0, ge=0.0)
    max_image_dimension: int = Field(default=1600, ge=64)


class AppConfig(BaseModel):
    """Main application configuration.

    Can be loaded from and saved to YAML files.

    Attributes:
        ai: Gemini settings
        pipeline: Paths and limits for the analysis run
        key_storage_backend: How API keys are stored
        encrypted_key_file_path: Path to encrypted key file (if using that backend)
    """

    ai: AISettings = Field(default_factory=AISettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    key_storage_backend: KeyStorageBackend = KeyStorageBackend.ENV
    encrypted_key_file_path: Path | None = None

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the platform-appropriate default configuration path.

        Returns:
            Path to the default config file location:
            - Windows: %APPDATA%/broll-scout/config.yaml
            - macOS: ~/Library/Application Support/broll-scout/config.yaml
            - Linux: ~/.config/broll-scout/config.yaml
        """
        system = platform.system()

        if system == "Windows":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif system == "Darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            xdg_config = os.environ.get("XDG_CONFIG_HOME")
            base = Path(xdg_config) if xdg_config else Path.home() / ".config"

        return base / "broll-scout" / "config.yaml"

    @classmethod
    def load_from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Loaded AppConfig instance.

        Raises:
            ConfigurationError: If file cannot be read or parsed.
        """
        try:
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")

            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)

            if data is None:
                return cls()
            if not isinstance(data, dict):
                raise ConfigurationError("Configuration root must be a mapping")

            return cls.model_validate(data)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

    def save_to_yaml(self, path: Path) -> None:
        """Save configuration to a YAML file.

        Creates parent directories if they don't exist.

        Raises:
            ConfigurationError: If file cannot be written.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            data = self.model_dump(mode="json")

            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

        except Exception as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")


# =============================================================================
# API Key Manager
# =============================================================================


class APIKeyManager:
    """Secure manager for API key storage and retrieval.

    Supports multiple storage backends:
    - ENV: Environment variable (GEMINI_API_KEY)
    - KEYRING: OS-level credential storage
    - ENCRYPTED_FILE: Fernet-encrypted local file

    Attributes:
        backend: The storage backend to use
        encrypted_file_path: Path to encrypted key file (for ENCRYPTED_FILE backend)
    """

    SERVICE_NAME = "broll-scout"
    ENV_VAR_NAME = "GEMINI_API_KEY"
    MIN_KEY_LENGTH = 10
    MAX_KEY_LENGTH = 256

    def __init__(
        self,
        backend: KeyStorageBackend,
        encrypted_file_path: Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        """Initialize the API key manager.

        Args:
            backend: Storage backend to use.
            encrypted_file_path: Path for encrypted file storage.
                Required if backend is ENCRYPTED_FILE.
            environ: Environment mapping for the ENV backend. Defaults to
                os.environ.

        Raises:
            ConfigurationError: If encrypted file backend selected without path.
        """
        self.backend = backend
        self.encrypted_file_path = encrypted_file_path
        self._environ = os.environ if environ is None else environ

        if backend == KeyStorageBackend.ENCRYPTED_FILE and not encrypted_file_path:
            raise ConfigurationError("encrypted_file_path required for ENCRYPTED_FILE backend")

    def _validate_key_format(self, key: str) -> None:
        """Validate API key format without exposing the key."""
        if not key or not isinstance(key, str):
            raise ConfigurationError("API key must be a non-empty string")
        if len(key) < self.MIN_KEY_LENGTH:
            raise ConfigurationError(
                f"API key too short (minimum {self.MIN_KEY_LENGTH} characters)"
            )
        if len(key) > self.MAX_KEY_LENGTH:
            raise ConfigurationError(f"API key too long (maximum {self.MAX_KEY_LENGTH} characters)")
        if key.strip() != key:
            raise ConfigurationError("API key should not have leading/trailing whitespace")

    def _get_fernet(self) -> Fernet:
        """Build a Fernet instance keyed on machine-specific identifiers."""
        identifiers = [
            platform.node(),
            platform.machine(),
            os.environ.get("USERNAME", os.environ.get("USER", "default")),
        ]
        key_bytes = hashlib.sha256(":".join(identifiers).encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(key_bytes))

    def store_key(self, key: str) -> None:
        """Store the Gemini API key securely.

        Raises:
            ConfigurationError: If key format is invalid or storage fails.
        """
        if self.backend == KeyStorageBackend.ENV:
            raise ConfigurationError(
                f"The env backend is read-only; export {self.ENV_VAR_NAME} in your shell instead"
            )

        self._validate_key_format(key)

        if self.backend == KeyStorageBackend.KEYRING:
            try:
                import keyring

                keyring.set_password(self.SERVICE_NAME, "api_key", key)
            except Exception as e:
                raise ConfigurationError(f"Failed to store key in keyring: {e}")

        elif self.backend == KeyStorageBackend.ENCRYPTED_FILE:
            try:
                encrypted = self._get_fernet().encrypt(key.encode("utf-8"))
                self.encrypted_file_path.parent.mkdir(parents=True, exist_ok=True)
                self.encrypted_file_path.write_bytes(encrypted)

                if platform.system() != "Windows":
                    os.chmod(self.encrypted_file_path, 0o600)

            except Exception as e:
                raise ConfigurationError(f"Failed to store encrypted key: {e}")

    def retrieve_key(self) -> str | None:
        """Retrieve the stored API key.

        Returns:
            The API key if found, None otherwise.

        Raises:
            ConfigurationError: If decryption fails.
        """
        if self.backend == KeyStorageBackend.ENV:
            return self._environ.get(self.ENV_VAR_NAME) or None

        if self.backend == KeyStorageBackend.KEYRING:
            try:
                import keyring

                return keyring.get_password(self.SERVICE_NAME, "api_key")
            except Exception:
                return None

        if self.backend == KeyStorageBackend.ENCRYPTED_FILE:
            if not self.encrypted_file_path or not self.encrypted_file_path.exists():
                return None

            try:
                encrypted = self.encrypted_file_path.read_bytes()
                return self._get_fernet().decrypt(encrypted).decode("utf-8")
            except InvalidToken:
                raise ConfigurationError("Failed to decrypt API key - encryption key mismatch")
            except Exception as e:
                raise ConfigurationError(f"Failed to retrieve encrypted key: {e}")

        return None

    def delete_key(self) -> bool:
        """Remove the stored API key.

        Returns:
            True if a key was removed, False if none was stored.

        Raises:
            ConfigurationError: For the env backend, or if deletion fails.
        """
        if self.backend == KeyStorageBackend.ENV:
            raise ConfigurationError(
                f"The env backend is read-only; unset {self.ENV_VAR_NAME} in your shell instead"
            )

        if self.backend == KeyStorageBackend.KEYRING:
            import keyring
            from keyring.errors import PasswordDeleteError

            try:
                keyring.delete_password(self.SERVICE_NAME, "api_key")
            except PasswordDeleteError:
                return False
            except Exception as e:
                raise ConfigurationError(f"Failed to delete key from keyring: {e}")
            return True

        if not self.encrypted_file_path or not self.encrypted_file_path.exists():
            return False

        try:
            # Overwrite before unlinking
            self.encrypted_file_path.write_bytes(secrets.token_bytes(64))
            self.encrypted_file_path.unlink()
        except OSError as e:
            raise ConfigurationError(f"Failed to delete encrypted key file: {e}")
        return True

    def is_key_configured(self) -> bool:
        """Check if an API key is configured and retrievable."""
        try:
            key = self.retrieve_key()
            return key is not None and len(key) >= self.MIN_KEY_LENGTH
        except ConfigurationError:
            return False


# =============================================================================
# Module-Level Functions
# =============================================================================


def get_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a path (or the default path) or return defaults.

    A missing or corrupted config file yields the default configuration.
    """
    config_path = path or AppConfig.get_default_config_path()

    if config_path.exists():
        try:
            return AppConfig.load_from_yaml(config_path)
        except ConfigurationError:
            return AppConfig()

    return AppConfig()


def key_manager_for(config: AppConfig) -> APIKeyManager:
    """Build the key manager for the backend recorded in config."""
    encrypted_path = config.encrypted_key_file_path
    if config.key_storage_backend == KeyStorageBackend.ENCRYPTED_FILE and not encrypted_path:
        encrypted_path = AppConfig.get_default_config_path().parent / "credentials.enc"
    return APIKeyManager(config.key_storage_backend, encrypted_path)


def configure_api_key(
    key: str,
    backend: KeyStorageBackend,
    config_path: Path | None = None,
) -> AppConfig:
    """Store an API key and record the chosen backend in the config file.

    Raises:
        ConfigurationError: If storage fails.
    """
    path = config_path or AppConfig.get_default_config_path()
    config = get_config(path)
    config.key_storage_backend = backend

    manager = key_manager_for(config)
    manager.store_key(key)

    if manager.encrypted_file_path:
        config.encrypted_key_file_path = manager.encrypted_file_path

    config.save_to_yaml(path)
    return config


def resolve_api_key(config: AppConfig) -> str | None:
    """Return the configured API key, or None when unavailable."""
    try:
        return key_manager_for(config).retrieve_key()
    except ConfigurationError:
        return None
