from __future__ import annotations

import os
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.request import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS


def default_config_path() -> Path:
    return Path.home() / ".config" / "snaptrade-client" / "config.toml"


class AppConfig(BaseModel):
    profile: str = "default"
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)


class RuntimeConfig(BaseModel):
    app: AppConfig
    config_path: Path


def _secure_dir(path: Path) -> None:
    if path.exists() and path.is_symlink():
        raise SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message=f"Refusing symlinked directory: {path}")
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    os.chmod(path, 0o700)
    st = path.stat()
    if st.st_uid != os.getuid():
        raise SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message=f"Directory is not owned by current user: {path}")


def _secure_file(path: Path) -> None:
    if path.is_symlink():
        raise SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message=f"Refusing symlinked file: {path}")
    st = path.stat()
    if st.st_uid != os.getuid():
        raise SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message=f"File is not owned by current user: {path}")
    os.chmod(path, 0o600)


def _apply_env_overrides(app_cfg: AppConfig) -> AppConfig:
    base_url = env_or_none("SNAPTRADE_BASE_URL")
    timeout = env_or_none("SNAPTRADE_TIMEOUT")
    updates: dict[str, object] = {}
    if base_url:
        updates["base_url"] = base_url
    if timeout:
        updates["timeout_seconds"] = timeout
    if not updates:
        return app_cfg
    try:
        return AppConfig.model_validate({**app_cfg.model_dump(mode="python"), **updates})
    except ValidationError as exc:
        raise SnapTradeError(code=ErrorCode.VALIDATION_ERROR, message=f"Invalid SNAPTRADE_* override: {exc}") from exc


def load_runtime_config(config_path: Path | None = None, profile: str | None = None) -> RuntimeConfig:
    cfg_path = config_path or default_config_path()
    _secure_dir(cfg_path.parent)

    if not cfg_path.exists():
        app_cfg = AppConfig(profile=profile or "default")
        runtime = RuntimeConfig(app=app_cfg, config_path=cfg_path)
        save_runtime_config(runtime)
    else:
        _secure_file(cfg_path)
        with cfg_path.open("rb") as fh:
            raw = tomllib.load(fh)
        try:
            app_cfg = AppConfig.model_validate(raw or {})
        except ValidationError as exc:
            raise SnapTradeError(code=ErrorCode.VALIDATION_ERROR, message=f"Invalid config {cfg_path}: {exc}") from exc
        if profile:
            app_cfg.profile = profile
        runtime = RuntimeConfig(app=app_cfg, config_path=cfg_path)

    runtime.app = _apply_env_overrides(runtime.app)
    return runtime


def save_runtime_config(config: RuntimeConfig) -> None:
    _secure_dir(config.config_path.parent)
    payload = config.app.model_dump(mode="python", exclude_none=True)
    with config.config_path.open("wb") as fh:
        fh.write(tomli_w.dumps(payload).encode("utf-8"))
    _secure_file(config.config_path)


def env_or_none(key: str) -> str | None:
    value = os.getenv(key)
    return value if value else None
