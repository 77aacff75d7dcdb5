"""Shared services for the application.

Built once from the environment; the server imports these singletons.
"""

from sheet_importer.automation import AutomationSession, Credentials
from sheet_importer.config import Settings
from sheet_importer.job_manager import JobProcessor
from sheet_importer.reporter import StatusReporter
from sheet_importer.sheets import SheetsSource

settings = Settings.from_env()

ENVIRONMENT = settings.environment

sheets_source = SheetsSource(
    service_account_email=settings.google_service_account_email,
    private_key=settings.google_private_key,
)

status_reporter = StatusReporter(
    base_url=settings.callback_base_url,
    secret=settings.hmac_secret,
    timeout=settings.callback_timeout_seconds,
)


def new_automation_session() -> AutomationSession:
    """Fresh browser session for one import job."""
    credentials = None
    if settings.target_login_url and settings.target_username and settings.target_password:
        credentials = Credentials(
            login_url=settings.target_login_url,
            username=settings.target_username,
            password=settings.target_password,
        )
    return AutomationSession(
        credentials=credentials,
        headless=settings.browser_headless,
        timeout_ms=settings.browser_timeout_ms,
        screenshot_dir=settings.screenshot_dir,
    )


job_processor = JobProcessor(
    source=sheets_source,
    reporter=status_reporter,
    session_factory=new_automation_session,
    target_base_url=settings.target_base_url,
)
