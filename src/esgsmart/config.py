# src/esgsmart/config.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from esgsmart.errors import ConfigurationMissing

# Load .env as early as possible
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent
SCHEMA_DIR = BASE_DIR / "schemas"

DEFAULT_BENCHMARK_DIR = "dbfs:/tmp/sbti_benchmarks"
DEFAULT_GAP_DIR = "dbfs:/tmp/gap_analysis"
DEFAULT_DBFS_BASE = "dbfs:/tmp/pdf_extractions"
DEFAULT_ENDPOINT = "esgsmart_chatbot"
DEFAULT_CHAT_ENDPOINT = "databricks-claude-sonnet-4"
DEFAULT_TARGET_TABLE = "esgsmart.pdf_extraction.report_extractions"
DEFAULT_POLL_SECONDS = 3.0


def load_json(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_yaml(path: Path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def need(name: str) -> str:
    """
    Return a required environment value or raise ConfigurationMissing.
    """
    value = os.getenv(name)
    if not value:
        raise ConfigurationMissing(name)
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring non-numeric %s=%r, using %s", name, raw, default
        )
        return default


class DatabricksSettings:
    """
    Connection and location settings for the Databricks workspace.

    Host and token are resolved lazily so that modules can be imported (and
    the pure analytics used) without any credentials in the environment.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        token: Optional[str] = None,
        benchmark_dir: Optional[str] = None,
        gap_dir: Optional[str] = None,
        dbfs_base: Optional[str] = None,
        endpoint: Optional[str] = None,
        chat_endpoint: Optional[str] = None,
        job_id: Optional[int] = None,
        target_table: Optional[str] = None,
    ):
        self._host = host
        self._token = token
        self.benchmark_dir = (
            benchmark_dir or os.getenv("DATABRICKS_BENCHMARK_DIR") or DEFAULT_BENCHMARK_DIR
        ).rstrip("/")
        self.gap_dir = (gap_dir or os.getenv("DATABRICKS_GAP_DIR") or DEFAULT_GAP_DIR).rstrip("/")
        self.dbfs_base = (dbfs_base or os.getenv("DATABRICKS_DBFS_BASE") or DEFAULT_DBFS_BASE).rstrip("/")
        self.endpoint = endpoint or os.getenv("DATABRICKS_ENDPOINT") or DEFAULT_ENDPOINT
        self.chat_endpoint = (
            chat_endpoint or os.getenv("DATABRICKS_CHAT_ENDPOINT") or DEFAULT_CHAT_ENDPOINT
        )
        self.target_table = (
            target_table or os.getenv("DATABRICKS_TARGET_TABLE") or DEFAULT_TARGET_TABLE
        )
        if job_id is None:
            raw_job = os.getenv("DATABRICKS_JOB_ID")
            job_id = int(raw_job) if raw_job and raw_job.isdigit() else 0
        self.job_id = job_id

    @property
    def host(self) -> str:
        return (self._host or need("DATABRICKS_HOST")).rstrip("/")

    @property
    def token(self) -> str:
        return self._token or need("DATABRICKS_TOKEN")


class ESGConfig:
    def __init__(self):
        self.summary_fields: dict[str, Any] = load_yaml(SCHEMA_DIR / "summary_fields.yaml")
        self.gri_topics: dict[str, str] = load_json(SCHEMA_DIR / "gri_topics.json")
        self.poll_seconds = _env_float("ESGSMART_POLL_SECONDS", DEFAULT_POLL_SECONDS)
        self.databricks = DatabricksSettings()


def load_config():
    return ESGConfig()


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure root logger. Safe to call multiple times.
    """
    level = level or os.getenv("ESGSMART_LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger().setLevel(numeric_level)


# Run once automatically
setup_logging()
