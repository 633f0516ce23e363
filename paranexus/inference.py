from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any


PROVIDER_PRIORITY = ("gemini", "claude", "codex")
PROVIDER_ENV_VAR = "PARANEXUS_INFERENCE_PROVIDER"

InferFn = Callable[[str, float], tuple[str, str]]


@dataclass(frozen=True)
class ProviderSpec:
    provider: str
    cli_name: str
    key_env_vars: tuple[str, ...]
    credential_files: tuple[str, ...]
    key_names: frozenset[str]
    token_names: frozenset[str] = frozenset({"refresh_token", "access_token"})


PROVIDER_SPECS: dict[str, ProviderSpec] = {
    "gemini": ProviderSpec(
        provider="gemini",
        cli_name="gemini",
        key_env_vars=("GEMINI_API_KEY", "GOOGLE_API_KEY"),
        credential_files=(
            ".gemini/settings.json",
            ".gemini/oauth_creds.json",
            ".config/gemini/settings.json",
        ),
        key_names=frozenset({"GEMINI_API_KEY", "GOOGLE_API_KEY", "apiKey", "api_key"}),
    ),
    "claude": ProviderSpec(
        provider="claude",
        cli_name="claude",
        key_env_vars=("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"),
        credential_files=(
            ".claude/.credentials.json",
            ".claude/credentials.json",
            ".claude.json",
        ),
        key_names=frozenset({"ANTHROPIC_API_KEY", "anthropicApiKey", "apiKey", "api_key"}),
    ),
    "codex": ProviderSpec(
        provider="codex",
        cli_name="codex",
        key_env_vars=("OPENAI_API_KEY",),
        credential_files=(".codex/auth.json",),
        key_names=frozenset({"OPENAI_API_KEY"}),
    ),
}


@dataclass(frozen=True)
class InferenceProviderStatus:
    provider: str
    cli_path: str | None
    auth_kind: str
    key_source: str | None
    ready: bool

    @property
    def cli_installed(self) -> bool:
        return self.cli_path is not None


@dataclass(frozen=True)
class InferenceRuntime:
    statuses: dict[str, InferenceProviderStatus]
    selected_provider: str | None

    @property
    def ready(self) -> bool:
        if not self.selected_provider:
            return False
        status = self.statuses.get(self.selected_provider)
        return bool(status and status.ready)

    def ready_order(self) -> list[str]:
        # No selection means inference is off, even when providers are ready.
        if not self.ready or not self.selected_provider:
            return []
        order = [self.selected_provider]
        for provider in PROVIDER_PRIORITY:
            status = self.statuses.get(provider)
            if status and status.ready and provider not in order:
                order.append(provider)
        return order


def discover_inference_runtime(
    preferred: str = "auto",
    *,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> InferenceRuntime:
    env = os.environ if env is None else env
    home = home or Path.home()
    statuses = {name: _detect(spec, home=home, env=env) for name, spec in PROVIDER_SPECS.items()}

    requested = (env.get(PROVIDER_ENV_VAR, "") or preferred or "auto").strip().lower()
    if requested == "none":
        return InferenceRuntime(statuses=statuses, selected_provider=None)

    selected = None
    if requested in statuses and statuses[requested].ready:
        selected = requested
    if selected is None:
        selected = next((name for name in PROVIDER_PRIORITY if statuses[name].ready), None)
    return InferenceRuntime(statuses=statuses, selected_provider=selected)


def run_inference_prompt_with_fallback(
    runtime: InferenceRuntime,
    prompt: str,
    *,
    timeout_s: float = 45.0,
    runner: Callable[[str, str, float], str] | None = None,
) -> tuple[str, str]:
    """Try each ready provider in order; returns (provider, text)."""

    order = runtime.ready_order()
    if not order:
        raise RuntimeError("no ready inference providers available")

    run = runner or _run_with_provider
    failures: list[str] = []
    for provider in order:
        try:
            text = run(provider, prompt, timeout_s)
        except Exception as exc:  # noqa: BLE001
            failures.append(f"{provider}: {_summarize_error_text(str(exc))}")
            continue
        return provider, text

    detail = "; ".join(failures) if failures else "all provider attempts failed"
    raise RuntimeError(f"inference provider fallback exhausted: {detail}")


def build_infer(runtime: InferenceRuntime) -> InferFn | None:
    if not runtime.ready_order():
        return None

    def _infer(prompt: str, timeout_s: float) -> tuple[str, str]:
        return run_inference_prompt_with_fallback(runtime, prompt, timeout_s=timeout_s)

    return _infer


def format_runtime_lines(runtime: InferenceRuntime) -> list[str]:
    lines = [
        f"inference selected: {runtime.selected_provider or 'none'}",
        f"inference ready: {'yes' if runtime.ready else 'no'}",
    ]
    for provider in PROVIDER_PRIORITY:
        status = runtime.statuses.get(provider)
        if status is None:
            continue
        lines.append(
            f"{provider}: cli={'yes' if status.cli_installed else 'no'} "
            f"auth={status.auth_kind} ready={'yes' if status.ready else 'no'} "
            f"source={status.key_source or 'none'}"
        )
    return lines


def _detect(spec: ProviderSpec, *, home: Path, env: Mapping[str, str]) -> InferenceProviderStatus:
    cli_path = shutil.which(spec.cli_name)

    for env_var in spec.key_env_vars:
        if env.get(env_var, "").strip():
            return InferenceProviderStatus(
                provider=spec.provider,
                cli_path=cli_path,
                auth_kind="api_key",
                key_source=f"env:{env_var}",
                ready=cli_path is not None,
            )

    for relative in spec.credential_files:
        path = home / relative
        payload = _read_json(path)
        if payload is None:
            continue
        if _find_first_key(payload, spec.key_names):
            auth_kind = "api_key"
        elif _find_first_key(payload, spec.token_names):
            auth_kind = "oauth"
        else:
            continue
        return InferenceProviderStatus(
            provider=spec.provider,
            cli_path=cli_path,
            auth_kind=auth_kind,
            key_source=f"file:~/{relative}",
            ready=cli_path is not None,
        )

    return InferenceProviderStatus(
        provider=spec.provider,
        cli_path=cli_path,
        auth_kind="none",
        key_source=None,
        ready=False,
    )


def _provider_command(provider: str, prompt: str) -> list[str]:
    if provider == "gemini":
        return ["gemini", "--output-format", "text", prompt]
    if provider == "claude":
        return ["claude", "--print", prompt]
    if provider == "codex":
        return ["codex", "exec", "--skip-git-repo-check", prompt]
    raise RuntimeError(f"unsupported inference provider: {provider}")


def _run_with_provider(provider: str, prompt: str, timeout_s: float) -> str:
    cmd = _provider_command(provider, prompt)
    proc = subprocess.run(
        cmd,
        check=False,
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    if proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    detail = proc.stderr.strip() or proc.stdout.strip() or f"exit={proc.returncode}"
    raise RuntimeError(f"{provider} inference failed: {_summarize_error_text(detail)}")


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception:  # noqa: BLE001
        return None


def _find_first_key(payload: Any, candidates: frozenset[str]) -> str:
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key in candidates and isinstance(value, str) and value.strip():
                return value.strip()
        for value in payload.values():
            found = _find_first_key(value, candidates)
            if found:
                return found
        return ""
    if isinstance(payload, list):
        for item in payload:
            found = _find_first_key(item, candidates)
            if found:
                return found
    return ""


def _summarize_error_text(text: str) -> str:
    value = " ".join(text.split())
    if len(value) <= 220:
        return value
    return f"{value[:217]}..."
