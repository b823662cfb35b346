"""Load settings.yaml into typed dataclasses. Checks agent credentials at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

VALID_MODES = ("fast", "robust")


@dataclass
class RetryConfig:
    max_retries: int = 5
    base_delay_sec: float = 0.8
    max_delay_sec: float = 15.0
    jitter_sec: float = 0.4
    retry_after_cap_sec: float = 30.0


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    label: str = ""
    base_url: str | None = None
    temperature: float | None = None
    review_temperature: float | None = None
    concurrency: int = 1
    use_stop_sequences: bool = True
    retry: RetryConfig = field(default_factory=RetryConfig)

    def display_name(self) -> str:
        return self.label or self.name


@dataclass
class PromptsConfig:
    solve: str
    review: str
    revision: str
    json_only_prefix: str = "Return ONLY valid JSON."


@dataclass
class DefaultsConfig:
    mode: str
    iterations: int
    output_dir: Path
    max_iterations: int = 20
    review_max_tokens: int = 700
    max_answer_chars_for_review: int = 14000


@dataclass
class AttachmentsConfig:
    max_file_chars: int = 20000
    max_total_chars: int = 60000


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    primary: str
    secondary: str
    attachments: AttachmentsConfig = field(default_factory=AttachmentsConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)


def _optional_float(value: object) -> float | None:
    return None if value is None else float(value)


def _load_model(name: str, raw: dict) -> ModelConfig:
    retry_raw = raw.get("retry", {}) or {}
    retry = RetryConfig(
        max_retries=int(retry_raw.get("max_retries", 5)),
        base_delay_sec=float(retry_raw.get("base_delay_sec", 0.8)),
        max_delay_sec=float(retry_raw.get("max_delay_sec", 15.0)),
        jitter_sec=float(retry_raw.get("jitter_sec", 0.4)),
        retry_after_cap_sec=float(retry_raw.get("retry_after_cap_sec", 30.0)),
    )
    return ModelConfig(
        name=name,
        sdk=raw["sdk"],
        model=raw["model"],
        api_key_env=raw["api_key_env"],
        timeout_sec=int(raw["timeout_sec"]),
        max_tokens=int(raw["max_tokens"]),
        label=str(raw.get("label", name)),
        base_url=raw.get("base_url"),
        temperature=_optional_float(raw.get("temperature")),
        review_temperature=_optional_float(raw.get("review_temperature")),
        concurrency=max(1, int(raw.get("concurrency", 1))),
        use_stop_sequences=bool(raw.get("use_stop_sequences", True)),
        retry=retry,
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    configured agents or mode are inconsistent.
    Logs missing API keys but does not raise — the CLI refuses
    to start a session until both agents have credentials.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        mode=str(defaults_raw.get("mode", "robust")).lower(),
        iterations=int(defaults_raw.get("iterations", 5)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        max_iterations=int(defaults_raw.get("max_iterations", 20)),
        review_max_tokens=int(defaults_raw.get("review_max_tokens", 700)),
        max_answer_chars_for_review=int(defaults_raw.get("max_answer_chars_for_review", 14000)),
    )
    if defaults.mode not in VALID_MODES:
        raise ValueError(f"defaults.mode must be one of {VALID_MODES}, got {defaults.mode!r}")

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        solve=prompts_raw["solve"],
        review=prompts_raw["review"],
        revision=prompts_raw["revision"],
        json_only_prefix=prompts_raw.get("json_only_prefix", "Return ONLY valid JSON."),
    )

    attachments_raw = raw.get("attachments", {}) or {}
    attachments = AttachmentsConfig(
        max_file_chars=int(attachments_raw.get("max_file_chars", 20000)),
        max_total_chars=int(attachments_raw.get("max_total_chars", 60000)),
    )

    inbox_raw = raw.get("inbox", {}) or {}
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        models[provider_name] = _load_model(provider_name, model_raw)

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider has no API key: %s — set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    agents_raw = raw.get("agents", {}) or {}
    primary = str(agents_raw.get("primary", "claude"))
    secondary = str(agents_raw.get("secondary", "openai"))
    for role, name in (("primary", primary), ("secondary", secondary)):
        if name not in models:
            raise ValueError(f"agents.{role} refers to unknown model '{name}'")
    if primary == secondary:
        raise ValueError("agents.primary and agents.secondary must be different models")

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        primary=primary,
        secondary=secondary,
        attachments=attachments,
        inbox=inbox,
        available_providers=available_providers,
    )
