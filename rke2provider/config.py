"""Configuration management for the rke2provider application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

DEFAULT_SCAN_DIRS = "/oem:/usr/local/cloud-config:/run/initramfs/live"

class Config:
    """Application configuration with sensible defaults."""

    # Cloud-config directories scanned for extra environment entries, in order
    SCAN_DIRS: tuple = tuple(
        d for d in os.getenv("RKE2_PROVIDER_SCAN_DIRS", DEFAULT_SCAN_DIRS).split(":") if d
    )

    # Environment file flavour: "containerd" or "plain"
    ENV_STRATEGY: str = os.getenv("RKE2_PROVIDER_ENV_STRATEGY", "containerd").lower()

    # Logging
    LOG_LEVEL: str = os.getenv("RKE2_PROVIDER_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "RKE2_PROVIDER_LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Security
    REDACT_KEYS: tuple = ("token", "password", "secret")

