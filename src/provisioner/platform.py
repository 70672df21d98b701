"""Dataverse (Power Platform) environment resolution over the pac CLI.

The target environment is either supplied by the operator or created from
the declarative template. An environment that already holds the template's
domain is reused, so a run that died after creation converges. Creation is
confirmed first. The resulting URL is read from the pac output; if it cannot
be found the step fails, but the identities and role assignments made
earlier in the run stay in place.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from .commands import CommandError, CommandRunner
from .directory import AmbiguousLookupError
from .errors import ProvisioningAborted, RegistryError
from .gate import ConfirmationGate
from .models import PlatformEnvironmentTemplate, PlatformResolution, PlatformSource
from .security import log_audit_event
from .template_loader import load_platform_template

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https://[^\s'\"|,;<>]+", re.IGNORECASE)
# Sentence punctuation that can trail a URL in pac output
URL_TRAILING_CHARS = ".,:;)]}"


class PlatformOutputError(RegistryError):
    """Raised when pac output does not contain the expected environment URL."""

    pass


def find_environment_urls(output: str, domain: str) -> list[str]:
    """Return the distinct URLs in pac output whose host belongs to domain, in order."""
    prefix = f"{domain.lower()}."
    urls: list[str] = []
    for match in URL_PATTERN.finditer(output):
        url = match.group(0).rstrip(URL_TRAILING_CHARS)
        host = (urlparse(url).hostname or "").lower()
        if host.startswith(prefix) and url not in urls:
            urls.append(url)
    return urls


def parse_environment_url(output: str, domain: str) -> str:
    """Extract the URL of the environment with this domain from pac output.

    Raises:
        PlatformOutputError: If no URL for the domain is present.
    """
    urls = find_environment_urls(output, domain)
    if urls:
        return urls[0]
    raise PlatformOutputError(
        f"Could not find the URL of environment '{domain}' in pac output. "
        "Check the environment in the Power Platform admin center and re-run "
        "with --dataverse-url."
    )


class PlatformClient:
    """Power Platform environments and the pac auth profile."""

    def __init__(self, runner: CommandRunner, pac_executable: str = "pac") -> None:
        self._runner = runner
        self._pac = pac_executable

    def show_signed_in_account(self) -> str | None:
        """Describe the active pac auth profile, or None when there is none."""
        try:
            output = self._runner.run([self._pac, "auth", "who"])
        except CommandError as e:
            logger.info(f"No pac auth profile active: {e}")
            return None
        return output.strip() or None

    def login(self) -> None:
        """Start the interactive pac auth flow."""
        self._runner.interactive([self._pac, "auth", "create"])

    def find_environment(self, domain: str) -> str | None:
        """Return the URL of the existing environment with this domain.

        Raises:
            AmbiguousLookupError: If more than one environment matches.
        """
        output = self._runner.run([self._pac, "admin", "list"])
        urls = find_environment_urls(output, domain)
        if not urls:
            return None
        if len(urls) > 1:
            raise AmbiguousLookupError(
                f"{len(urls)} Dataverse environments match domain '{domain}' "
                f"({', '.join(urls)}). Re-run with --dataverse-url to pick one."
            )
        return urls[0]

    def create_environment(
        self,
        name: str,
        domain: str,
        environment_type: str,
        region: str,
        language: str,
        currency: str,
    ) -> str:
        """Create an environment and return the raw pac output."""
        return self._runner.run(
            [
                self._pac,
                "admin",
                "create",
                "--name",
                name,
                "--domain",
                domain,
                "--type",
                environment_type,
                "--region",
                region,
                "--language",
                language,
                "--currency",
                currency,
            ]
        )


def format_template(settings: dict[str, str]) -> str:
    width = max(len(key) for key in settings)
    return "\n".join(f"  {key.ljust(width)} : {value}" for key, value in settings.items())


class PlatformEnvironmentResolver:
    """Select or create the Dataverse environment for an azd environment."""

    def __init__(
        self,
        client: PlatformClient,
        gate: ConfirmationGate,
        template_path: Path,
    ) -> None:
        self._client = client
        self._gate = gate
        self._template_path = template_path

    def resolve(
        self,
        environment: str,
        supplied_url: str | None = None,
        persisted_url: str | None = None,
    ) -> PlatformResolution:
        """Return the environment URL, creating an environment if needed.

        Raises:
            ProvisioningAborted: If the operator rejects the generated configuration.
            TemplateLoadError: If the template is missing or invalid.
            PlatformOutputError: If the creation output has no URL.
            AmbiguousLookupError: If several environments hold the domain.
        """
        if supplied_url:
            logger.info(f"Using supplied Dataverse environment {supplied_url}")
            return PlatformResolution(url=supplied_url, source=PlatformSource.SUPPLIED)

        if persisted_url and self._gate.confirm(
            "Keep using this Dataverse environment?",
            f"DATAVERSE_ENV_URL: {persisted_url}",
        ):
            return PlatformResolution(url=persisted_url, source=PlatformSource.PERSISTED)

        answer = self._gate.ask(
            "Existing Dataverse environment URL (leave empty to create a new one)"
        )
        if answer:
            logger.info(f"Using supplied Dataverse environment {answer}")
            return PlatformResolution(url=answer, source=PlatformSource.SUPPLIED)

        template = load_platform_template(self._template_path)
        return self._create(environment, template)

    def _create(
        self,
        environment: str,
        template: PlatformEnvironmentTemplate,
    ) -> PlatformResolution:
        settings = template.describe(environment)
        existing_url = self._client.find_environment(settings["domain"])
        if existing_url:
            logger.info(
                f"Found existing Dataverse environment for domain '{settings['domain']}': "
                f"{existing_url}"
            )
            return PlatformResolution(
                url=existing_url,
                source=PlatformSource.DISCOVERED,
                name=settings["name"],
                domain=settings["domain"],
            )

        if not self._gate.confirm(
            "Create a Dataverse environment with these settings?",
            format_template(settings),
        ):
            raise ProvisioningAborted(
                "Dataverse environment creation rejected.",
                remediation=(
                    f"Edit {self._template_path} or re-run with "
                    "--dataverse-url <existing environment URL>."
                ),
            )

        name = settings["name"]
        domain = settings["domain"]
        logger.info(f"Creating Dataverse environment '{name}' ({domain}); this can take minutes")
        output = self._client.create_environment(
            name=name,
            domain=domain,
            environment_type=template.type,
            region=template.region,
            language=template.language,
            currency=template.currency,
        )
        url = parse_environment_url(output, domain)
        log_audit_event("platform_environment", environment, url, "create", "success")

        return PlatformResolution(
            url=url,
            source=PlatformSource.GENERATED,
            name=name,
            domain=domain,
        )
