"""
Configuration Management for Mothership

This module handles all service configuration through environment variables.
A `.env` file in the working directory is loaded first (python-dotenv), so local
development can keep credentials out of the shell.

Environment Variables:

    Server Settings:
        BIND_ADDRESS         - Server bind address (default: "0.0.0.0")
        PORT                 - Server port (default: 3000)
        DEBUG                - Enable debug logging "yes"/"no" (default: "no")
        CORS_ORIGINS         - JSON list of allowed origins (default: ["*"])

    Fleet and Polling:
        THING_IDS            - Comma separated Arduino Thing ids (default: none)
        POLL_MS              - Polling interval in milliseconds (default: 1500)
        POLL_AUTOSTART       - Start polling when the server starts (default: "yes")
        ONLINE_WINDOW_MS     - A Thing seen within this window is online (default: 10000)
        AGGREGATE_STALE      - Let Things whose read failed contribute their
                               last known value to the fleet summary (default: "no")

    Arduino IoT Cloud:
        ARDUINO_CLIENT_ID     - API client id (default: none)
        ARDUINO_CLIENT_SECRET - API client secret (default: none)
        SPACE_ID              - Shared space / organization id (default: none)
        REQUIRE_SPACE         - Space id required for live mode (default: "yes")
        ARDUINO_API_BASE      - API base URL (default: "https://api2.arduino.cc/iot")
        API_TIMEOUT           - Timeout for cloud calls in seconds (default: 10)
        POOL_MAXSIZE          - Connection pool size (default: 10)

    Output Policy:
        SERVO_SPEED_BLINK    - Servo speed while the fleet is in low light (default: 140)
        SERVO_SPEED_IDLE     - Servo speed otherwise (default: 40)

Mock Mode:

    Missing credentials (or a missing SPACE_ID while REQUIRE_SPACE=yes) never
    fail startup. The service switches to mock mode instead: reads return
    synthetic light values and writes succeed without touching the cloud.

Examples:

    # Live mode against a shared space
    THING_IDS=thing-a,thing-b,thing-c
    ARDUINO_CLIENT_ID=abc
    ARDUINO_CLIENT_SECRET=secret
    SPACE_ID=4f1c...
    POLL_MS=2000

    # Mock mode
    THING_IDS=bee1,bee2
    DEBUG=yes

Accessing Configuration:

    from mothership.config import settings

    interval = settings.poll_interval
    if settings.mock_mode:
        ...
"""
import logging
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api2.arduino.cc/iot"

load_dotenv()


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    # Server configuration
    server_host: str = Field(default="0.0.0.0", alias="BIND_ADDRESS")
    server_port: int = Field(default=3000, alias="PORT")
    debug: bool = Field(default=False, alias="DEBUG")
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")

    # Fleet and polling
    thing_ids_raw: str = Field(default="", alias="THING_IDS")
    poll_ms: int = Field(default=1500, gt=0, alias="POLL_MS")
    poll_autostart: bool = Field(default=True, alias="POLL_AUTOSTART")
    online_window_ms: int = Field(default=10_000, ge=0, alias="ONLINE_WINDOW_MS")
    aggregate_stale: bool = Field(default=False, alias="AGGREGATE_STALE")

    # Arduino IoT Cloud
    client_id: str = Field(default="", alias="ARDUINO_CLIENT_ID")
    client_secret: str = Field(default="", alias="ARDUINO_CLIENT_SECRET")
    space_id: str = Field(default="", alias="SPACE_ID")
    require_space: bool = Field(default=True, alias="REQUIRE_SPACE")
    api_base: str = Field(default=DEFAULT_API_BASE, alias="ARDUINO_API_BASE")
    timeout: float = Field(default=10, gt=0, alias="API_TIMEOUT")  # Seconds per cloud call
    pool_maxsize: int = Field(default=10, ge=0, alias="POOL_MAXSIZE")

    # Output policy
    servo_speed_blink: int = Field(default=140, ge=0, le=180, alias="SERVO_SPEED_BLINK")
    servo_speed_idle: int = Field(default=40, ge=0, le=180, alias="SERVO_SPEED_IDLE")

    model_config = {
        "env_prefix": "",
        "case_sensitive": False
    }

    # Computed properties
    @property
    def thing_ids(self) -> List[str]:
        """Configured Thing ids in order, blanks and duplicates removed."""
        ids = []
        for thing_id in self.thing_ids_raw.split(","):
            thing_id = thing_id.strip()
            if thing_id and thing_id not in ids:
                ids.append(thing_id)
        return ids

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)

    @property
    def has_space(self) -> bool:
        return bool(self.space_id)

    @property
    def mock_mode(self) -> bool:
        """True when the gateway cannot talk to the cloud."""
        if not self.has_credentials:
            return True
        return self.require_space and not self.has_space

    @property
    def poll_interval(self) -> float:
        """Polling interval in seconds."""
        return self.poll_ms / 1000.0


# Global settings instance
settings = Settings()
