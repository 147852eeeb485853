import logging
from typing import Optional

import httpx

from cms.config import Settings
from cms.core.exceptions import ConfigurationError
from cms.services.metadata_client import API_KEY_HEADER
from cms.utils.clock import utcnow

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    "JWT_SECRET",
    "DB_HOST",
    "DB_USERNAME",
    "DB_PASSWORD",
    "DB_NAME",
    "SSO_SERVER_URL",
    "METADATA_SERVER_URL",
)


class BootstrapService:
    """Startup checks run once before the app starts serving requests."""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def run(self) -> dict:
        logger.info("Starting application bootstrap")
        self.validate_configuration()
        services = self.check_external_services()
        logger.info("Application bootstrap finished")
        return services

    def validate_configuration(self) -> None:
        missing = [name for name in REQUIRED_SETTINGS if not getattr(self.settings, name, None)]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    def check_external_services(self) -> dict:
        """Probe the SSO and metadata servers.

        Failures are logged as warnings and never stop startup.
        """
        targets = {
            "sso": (self.settings.SSO_SERVER_URL, {}),
            "metadata": (
                self.settings.METADATA_SERVER_URL,
                {API_KEY_HEADER: self.settings.METADATA_API_KEY},
            ),
        }

        results = {}
        with httpx.Client(
            timeout=self.settings.HEALTHCHECK_TIMEOUT_SECONDS,
            transport=self.transport,
        ) as client:
            for name, (base_url, headers) in targets.items():
                try:
                    response = client.get(f"{base_url}/health", headers=headers)
                    response.raise_for_status()
                    results[name] = "ok"
                except httpx.HTTPError as exc:
                    logger.warning("External service %s is unreachable: %s", name, exc)
                    results[name] = "unavailable"
        return results

    def log_application_info(self) -> None:
        logger.info("==========================================")
        logger.info("Corporate CMS backend")
        logger.info("Environment: %s", self.settings.APP_ENV)
        logger.info("Port: %s", self.settings.PORT)
        logger.info("Started at: %s", utcnow().isoformat())
        logger.info("==========================================")
