"""
Environment resolution and database isolation checks.

Runs once at process start. Decides whether the process is development or
production, picks the connection string for it and refuses to start when
development could end up talking to production.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from src.config.settings import Settings
from src.database.connection import Database, create_database
from src.database.placeholder import PlaceholderDatabase
from src.sync.exceptions import ConfigurationError, EnvironmentIsolationError
from src.sync.models import ConnectionDescriptor, Environment

logger = logging.getLogger(__name__)

PRODUCTION_MARKER = "prod"
DEVELOPMENT_MARKER = "dev"


@dataclass(frozen=True)
class ResolvedEnvironment:
    """What the application process runs against."""
    environment: Environment
    descriptor: Optional[ConnectionDescriptor]
    port: int
    placeholder: bool = False


@dataclass(frozen=True)
class ToolingEnvironment:
    """Both ends of a comparison/sync run. Never the same physical target."""
    environment: Environment
    production: ConnectionDescriptor
    development: ConnectionDescriptor


class EnvironmentResolver:
    """Applies the isolation rules to the configured connection strings."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.environment = Environment.from_flag(settings.app.environment)

    def _development_url(self) -> Optional[str]:
        return self.settings.database.database_url_dev

    def _production_url(self) -> Optional[str]:
        return self.settings.database.database_url_prod or self.settings.database.database_url

    @staticmethod
    def _check_not_production(url: str) -> None:
        if PRODUCTION_MARKER in url.lower():
            logger.critical(
                "SAFETY VIOLATION: development mode cannot use a production database URL "
                f"(URL contains {PRODUCTION_MARKER!r})"
            )
            raise EnvironmentIsolationError(
                "Development mode cannot use production database URL: "
                f"database URL contains {PRODUCTION_MARKER!r} but environment is development",
                rule="dev-url-contains-prod",
            )

    @staticmethod
    def _warn_if_development(url: str) -> None:
        if DEVELOPMENT_MARKER in url.lower():
            logger.warning(
                f"WARNING: production mode using database URL containing {DEVELOPMENT_MARKER!r}; "
                "verify this is intentional"
            )

    @staticmethod
    def _check_distinct_targets(
        production: ConnectionDescriptor, development: ConnectionDescriptor
    ) -> None:
        if production.same_target_as(development):
            logger.critical(
                "Production and development resolve to the same database and schema: "
                f"{production.identity}"
            )
            raise EnvironmentIsolationError(
                "Production and development resolve to the same database and schema. "
                "Environment isolation required.",
                rule="same-target",
            )

    def resolve_application(self, allow_placeholder: bool = True) -> ResolvedEnvironment:
        """
        Resolve the environment of the main server process.

        Args:
            allow_placeholder: Boot in placeholder mode when development has no
                connection string instead of failing.

        Raises:
            ConfigurationError: A required connection string is missing.
            EnvironmentIsolationError: Development points at production.
        """
        logger.info(f"Environment: {self.environment.value.upper()}")

        if self.environment.is_development:
            url = self._development_url()
            port = self.settings.app.dev_port
            if not url:
                if not allow_placeholder:
                    raise ConfigurationError(
                        "DATABASE_URL_DEV must be set in development mode. "
                        "This prevents accidental connection to production database.",
                        rule="dev-url-missing",
                    )
                logger.warning(
                    "No DATABASE_URL_DEV configured: starting in placeholder mode, "
                    "database features will not work"
                )
                return ResolvedEnvironment(
                    environment=self.environment,
                    descriptor=None,
                    port=port,
                    placeholder=True,
                )
            self._check_not_production(url)
            descriptor = ConnectionDescriptor.from_url(url, label="development")
            prod_url = self._production_url()
            if prod_url:
                self._check_distinct_targets(
                    ConnectionDescriptor.from_url(prod_url, label="production"), descriptor
                )
            logger.info("Using DEVELOPMENT database (isolated from production)")
        else:
            url = self._production_url()
            port = self.settings.app.port
            if not url:
                logger.critical("Production mode requires DATABASE_URL_PROD or DATABASE_URL")
                raise ConfigurationError(
                    "DATABASE_URL_PROD or DATABASE_URL must be set in production mode.",
                    rule="prod-url-missing",
                )
            self._warn_if_development(url)
            logger.info("Using PRODUCTION database")
            descriptor = ConnectionDescriptor.from_url(url, label="production")

        return ResolvedEnvironment(environment=self.environment, descriptor=descriptor, port=port)

    def resolve_tooling(self) -> ToolingEnvironment:
        """
        Resolve both connection strings for comparison and sync tooling.

        Raises:
            ConfigurationError: Either connection string is missing.
            EnvironmentIsolationError: The two strings reach the same target,
                or development points at production in development mode.
        """
        prod_url = self._production_url()
        if not prod_url:
            raise ConfigurationError("Production database URL not found", rule="prod-url-missing")

        dev_url = self._development_url()
        if not dev_url:
            raise ConfigurationError(
                "DATABASE_URL_DEV is required for database comparison. "
                "Please create a separate development database.",
                rule="dev-url-missing",
            )

        if dev_url.strip() == prod_url.strip():
            logger.critical("DATABASE_URL_DEV is identical to the production URL")
            raise EnvironmentIsolationError(
                "DATABASE_URL_DEV cannot be the same as production URL. "
                "Environment isolation required.",
                rule="identical-urls",
            )

        if self.environment.is_development:
            self._check_not_production(dev_url)

        production = ConnectionDescriptor.from_url(prod_url, label="production")
        development = ConnectionDescriptor.from_url(dev_url, label="development")

        self._check_distinct_targets(production, development)

        logger.info(f"Production DB: {production.redacted_url}")
        logger.info(f"Development DB: {development.redacted_url} (schema {development.effective_schema})")
        return ToolingEnvironment(
            environment=self.environment,
            production=production,
            development=development,
        )

    def create_application_database(
        self, resolved: ResolvedEnvironment
    ) -> Union[Database, PlaceholderDatabase]:
        """Build the single database handle used for normal application traffic."""
        if resolved.placeholder or resolved.descriptor is None:
            return PlaceholderDatabase()
        return create_database(
            resolved.descriptor,
            self.settings,
            allow_destructive=resolved.environment.is_development,
        )
