"""
Runtime configuration for the Interview Assistant.

Settings are read from the environment (after loading ``.env`` from the
project root) into a frozen ``AssistantConfig`` with strict validation.

Supports both OpenAI and Azure OpenAI backends:
  - OpenAI: Set OPENAI_API_KEY (and optionally OPENAI_MODEL)
  - Azure OpenAI: Set AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT

With neither configured the assessment gateway runs offline and uses the
fallback content for every operation.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from agents import OpenAIChatCompletionsModel
from dotenv import load_dotenv
from openai import AsyncAzureOpenAI


__all__ = ["AssistantConfig", "RequestDelays", "load_config", "build_agent_model"]


# Load environment variables from .env file
_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(_env_path)

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gpt-5-mini"


@dataclass(frozen=True)
class RequestDelays:
    """Fixed pause before each external call, in seconds."""

    extract: float = 1.0
    generate: float = 2.0
    evaluate: float = 1.5
    summarize: float = 2.5

    def scaled(self, factor: float) -> "RequestDelays":
        return RequestDelays(
            extract=self.extract * factor,
            generate=self.generate * factor,
            evaluate=self.evaluate * factor,
            summarize=self.summarize * factor,
        )


@dataclass(frozen=True)
class AssistantConfig:
    """Runtime config for the assistant and its HTTP service."""

    model: str
    openai_api_key: Optional[str]
    azure_endpoint: Optional[str]
    azure_key: Optional[str]
    azure_deployment: Optional[str]
    azure_api_version: str
    request_timeout_s: float
    recheck_interval_s: float
    delays: RequestDelays
    data_dir: Path
    transcript_file: Path
    service_host: str
    service_port: int
    tick_interval_s: float
    reasoning_effort: str = "low"

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_endpoint and self.azure_key and self.azure_deployment)

    @property
    def has_credentials(self) -> bool:
        return self.uses_azure or bool(self.openai_api_key)


def _positive_float(name: str, default: str, allow_zero: bool = False) -> float:
    raw = (os.environ.get(name, default) or "").strip()
    if not raw:
        raise RuntimeError(f"{name} resolved to empty value.")
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number. Got: {raw}") from exc
    if value < 0 or (value == 0 and not allow_zero):
        raise RuntimeError(f"{name} must be positive. Got: {value}.")
    return value


def load_config() -> AssistantConfig:
    """Load runtime config from environment with strict validation."""
    azure_endpoint = os.environ.get("AZURE_OPENAI_ENDPOINT")
    azure_key = os.environ.get("AZURE_OPENAI_KEY")
    azure_deployment = os.environ.get("AZURE_OPENAI_DEPLOYMENT")
    api_type = os.environ.get("OPENAI_API_TYPE", "").lower()

    if api_type == "azure" and not all([azure_endpoint, azure_key, azure_deployment]):
        raise RuntimeError(
            "Azure OpenAI requires AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, "
            "and AZURE_OPENAI_DEPLOYMENT environment variables"
        )

    model = (os.environ.get("OPENAI_MODEL", DEFAULT_MODEL) or "").strip()
    if not model:
        raise RuntimeError("OPENAI_MODEL resolved to empty value.")

    request_timeout_s = _positive_float("ASSESSMENT_TIMEOUT_S", "30")
    recheck_interval_s = _positive_float("ASSESSMENT_RECHECK_S", "300", allow_zero=True)
    delay_scale = _positive_float("ASSESSMENT_DELAY_SCALE", "1.0", allow_zero=True)
    tick_interval_s = _positive_float("TICK_INTERVAL_S", "1.0")

    data_dir = Path(os.environ.get("DATA_DIR") or Path.cwd() / "data").expanduser()

    transcript_override = os.environ.get("TRANSCRIPT_FILE")
    if transcript_override:
        transcript_file = Path(transcript_override).expanduser()
    else:
        transcript_file = data_dir / "interview_transcript.txt"

    service_host = (os.environ.get("SERVICE_HOST", "0.0.0.0") or "").strip()
    if not service_host:
        raise RuntimeError("SERVICE_HOST resolved to empty value.")

    port_raw = (os.environ.get("SERVICE_PORT", "8780") or "").strip()
    try:
        service_port = int(port_raw)
    except ValueError as exc:
        raise RuntimeError(f"SERVICE_PORT must be an integer. Got: {port_raw}") from exc
    if service_port < 1 or service_port > 65535:
        raise RuntimeError(f"SERVICE_PORT must be in range 1-65535. Got: {service_port}.")

    return AssistantConfig(
        model=azure_deployment if azure_deployment and azure_endpoint and azure_key else model,
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
        azure_endpoint=azure_endpoint,
        azure_key=azure_key,
        azure_deployment=azure_deployment,
        azure_api_version=os.environ.get("AZURE_OPENAI_API_VERSION", "2024-08-01-preview"),
        request_timeout_s=request_timeout_s,
        recheck_interval_s=recheck_interval_s,
        delays=RequestDelays().scaled(delay_scale),
        data_dir=data_dir,
        transcript_file=transcript_file,
        service_host=service_host,
        service_port=service_port,
        tick_interval_s=tick_interval_s,
        reasoning_effort=os.environ.get("OPENAI_REASONING_EFFORT", "low"),
    )


def build_agent_model(config: AssistantConfig) -> Union[str, OpenAIChatCompletionsModel]:
    """
    Resolve the model handed to each agent.

    Returns the plain model name for OpenAI, or a chat-completions model bound
    to an Azure client when Azure is configured.
    """
    if not config.uses_azure:
        logger.info("Using OpenAI: model %s", config.model)
        return config.model

    logger.info(
        "Using Azure OpenAI: %s, deployment: %s",
        config.azure_endpoint,
        config.azure_deployment,
    )
    azure_client = AsyncAzureOpenAI(
        azure_endpoint=config.azure_endpoint,
        api_key=config.azure_key,
        api_version=config.azure_api_version,
    )
    return OpenAIChatCompletionsModel(model=config.model, openai_client=azure_client)
