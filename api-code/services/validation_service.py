from __future__ import annotations

import logging

from models import SiteConfig, ValidationResult

from .command_runner import CommandRunner, classify_validation
from .site_locks import SiteLockRegistry


logger = logging.getLogger("site-engine.validate")


class ValidationService:
    """Runs a site's validate command against its working tree."""

    def __init__(
        self, runner: CommandRunner, locks: SiteLockRegistry, *, timeout: float = 300.0
    ) -> None:
        self.runner = runner
        self.locks = locks
        self.timeout = timeout

    async def execute_validation(self, site: SiteConfig) -> ValidationResult:
        command = (site.validate_command or "").strip()
        if not command:
            return ValidationResult(has_validate_command=False, success=False)

        async with self.locks.for_site(site.id):
            result = await self.runner.run(command, site.working_path, self.timeout)

        status = classify_validation(result.return_code)
        logger.info(
            "Validation for site=%s finished status=%s code=%s in %sms",
            site.id,
            status,
            result.return_code,
            result.execution_time_ms,
        )
        return ValidationResult(
            has_validate_command=True,
            success=result.success,
            status=status,
            return_code=result.return_code,
            stdout=result.stdout,
            stderr=result.stderr,
            execution_time_ms=result.execution_time_ms,
        )
