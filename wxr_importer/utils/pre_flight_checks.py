from __future__ import annotations

import requests

from ..migrators.ports import KeyService
from .errors import WXRImportError
from .logs import log_message


class PreFlightCheckError(WXRImportError):
    """Custom exception for pre-flight check failures."""
    pass


def run_preflight_checks(keys: KeyService, publisher_key_name: str) -> None:
    """
    Verifies that the signing service is reachable and knows the publisher key.

    Args:
        keys: The signing/identity service.
        publisher_key_name: Name of the key every ghostwritten document and
            every capability grant is signed with.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    log_message("Running pre-flight checks...")

    if not publisher_key_name:
        raise PreFlightCheckError("No publisher key name was given.")

    # Check 1: the signing service answers
    try:
        available = keys.list_keys()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        if status == 401:
            raise PreFlightCheckError("The API token is invalid or has expired.") from e
        raise PreFlightCheckError(f"Unexpected error listing signing keys: {e}") from e
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error reaching the signing service: {e}") from e

    # Check 2: the publisher key is registered
    if not any(key.name == publisher_key_name for key in available):
        raise PreFlightCheckError(
            f"Publisher key '{publisher_key_name}' is not registered with the signing service."
        )

    log_message("Pre-flight checks passed successfully.")
