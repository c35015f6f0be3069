"""Configuration dataclass."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Settings:
    """Configuration settings for silverhouse_viewer."""

    FTP_HOST: str
    FTP_PORT: int
    FTP_USER: str
    FTP_PASS: str
    FTP_TIMEOUT_S: float
    FTP_LOGS_FOLDER: str
    FTP_MACHINE_IDS_PATH: str
    LOCAL_MACHINE_FILE: str
    LOG_CACHE_TTL_S: float
    MACHINE_IDS_CACHE_TTL_S: float
    DASHBOARD_USER: str
    DASHBOARD_PASS: str
    SESSION_TTL_S: float
    HTTP_HOST: str
    HTTP_PORT: int
