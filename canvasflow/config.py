"""Application configuration. All env vars defined here with defaults."""

from pydantic_settings import BaseSettings


class CanvasConfig(BaseSettings):
    # ── Logging ──
    log_level: str = "INFO"

    # ── Execution ──
    io_timeout_seconds: float = 30.0           # per outbound call made through ctx.fetch
    max_workflow_nodes: int = 0                # 0 = unlimited
    log_starter_nodes: bool = False            # starter nodes are silent in the run log

    model_config = {"env_prefix": "CANVASFLOW_", "env_file": ".env", "extra": "ignore"}


config = CanvasConfig()
