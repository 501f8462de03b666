from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration for the event core.

    Values come from the environment or a local .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- General ---
    SERVICE_NAME: str = "FusionBridge Event Core"
    VERSION: str = "0.1.0"
    ENV: str = "dev"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- In-memory stores ---
    EVENT_STORE_MAXLEN: int = 5000       # events kept for temporal conditions
    AUDIT_STORE_MAXLEN: int = 500        # automation executions kept for audit

    # --- Automation actions ---
    ACTION_TIMEOUT_SEC: float = 15.0
    HTTP_USER_AGENT: str = "FusionBridge Automation/1.0"

    # --- YoLink MQTT ---
    YOLINK_MQTT_HOST: str = "api.yosmart.com"
    YOLINK_MQTT_PORT: int = 8003
    YOLINK_MQTT_KEEPALIVE: int = 60

    # --- Reconnection backoff ---
    RECONNECT_BASE_DELAY_SEC: float = 5.0
    RECONNECT_MAX_DELAY_SEC: float = 60.0

    # --- Piko WebSocket ---
    PIKO_CONNECT_TIMEOUT_SEC: float = 30.0

    # --- Bootstrap ---
    BOOTSTRAP_FILE: str = ""             # JSON with connectors, devices, areas, locations, rules

    # --- Pushover ---
    PUSHOVER_API_URL: str = "https://api.pushover.net/1/messages.json"
    PUSHOVER_API_TOKEN: str = ""
    PUSHOVER_GROUP_KEY: str = ""
    PUSHOVER_ENABLED: bool = False


settings = Settings()
