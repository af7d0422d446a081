from pathlib import Path

import yaml


class Config:
    def __init__(self, config_path=None):
        if config_path is None:
            config_path = Path(__file__).parent.parent / "config" / "config.yaml"

        self.config_path = Path(config_path)
        self.config = self._load_config()

    def _load_config(self):
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {self.config_path}. "
                f"Please copy config.example.yaml to config.yaml and update with your settings."
            )

        with open(self.config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @property
    def github_token(self):
        return self.config.get("github", {}).get("token")

    @property
    def github_owner(self):
        return self.config.get("github", {}).get("owner")

    @property
    def github_repo(self):
        return self.config.get("github", {}).get("repo")

    @property
    def github_branch(self):
        return self.config.get("github", {}).get("branch", "main")

    @property
    def github_api_url(self):
        return self.config.get("github", {}).get("api_url", "https://api.github.com").rstrip("/")

    @property
    def workflow_name(self):
        """Name of the GitHub Actions workflow treated as the deployment

        Raises:
            ValueError: If the configured name is empty
        """
        name = self.config.get("github", {}).get("workflow_name", "CI")
        if not name or not str(name).strip():
            raise ValueError("github.workflow_name must not be empty")
        return str(name)

    @property
    def dora_config(self):
        """Get trunk DORA metrics configuration

        Returns:
            dict: Configuration with keys:
                  - lookback_days: int (default 7), days before the window searched for failures
                  - lookahead_days: int (default 7), days after the window searched for runs

        Raises:
            ValueError: If a value is not a non-negative integer
        """
        default_config = {
            "lookback_days": 7,
            "lookahead_days": 7,
        }

        config_dora = self.config.get("dora_metrics", {})

        merged = {
            "lookback_days": config_dora.get("lookback_days", default_config["lookback_days"]),
            "lookahead_days": config_dora.get("lookahead_days", default_config["lookahead_days"]),
        }

        for key, value in merged.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"dora_metrics.{key} must be a non-negative integer, got {value!r}")

        return merged

    @property
    def dashboard_config(self):
        default_config = {"port": 5001, "debug": False}
        config_dashboard = self.config.get("dashboard", {})
        return {
            "port": config_dashboard.get("port", default_config["port"]),
            "debug": config_dashboard.get("debug", default_config["debug"]),
        }

    @property
    def logging_config(self):
        """Logging settings for the command-line runner

        Returns:
            dict: Configuration with keys:
                  - level: str (default INFO), main log file level
                  - file: str or None, main log file override
                  - config_file: str (default config/logging.yaml), rotation and file layout
        """
        config_logging = self.config.get("logging", {}) or {}
        return {
            "level": str(config_logging.get("level", "INFO")).upper(),
            "file": config_logging.get("file"),
            "config_file": config_logging.get("config_file", "config/logging.yaml"),
        }
