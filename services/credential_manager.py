"""Keyring-backed storage for exchange API credentials.

Credentials are kept out of the ledger database entirely. Each exchange's
credentials are stored as one JSON entry under the configured keyring
service, keyed by the exchange name, and every write is durable as soon
as keyring returns.
"""

import logging

import keyring
from keyring.errors import KeyringError

from config import settings
from schemas.exchange import Exchange, ExchangeCredentials

logger = logging.getLogger(__name__)


def _service_name() -> str:
    return settings.CREDENTIAL_SERVICE_NAME


def get_exchange_credentials(exchange: Exchange) -> ExchangeCredentials | None:
    """Retrieve the credentials stored for ``exchange``.

    Returns:
        The credentials, or ``None`` if none are stored or the keyring
        backend failed.
    """
    try:
        value = keyring.get_password(_service_name(), exchange.value)
    except KeyringError:
        logger.debug("keyring lookup failed for %s", exchange.value, exc_info=True)
        return None
    if value is None:
        return None
    return ExchangeCredentials.model_validate_json(value)


def clear_exchange_credentials(exchange: Exchange) -> bool:
    """Remove the credentials stored for ``exchange``.

    Returns:
        ``True`` if credentials were removed, ``False`` if there were none
        or the keyring backend failed.
    """
    if get_exchange_credentials(exchange) is None:
        return False

    try:
        keyring.delete_password(_service_name(), exchange.value)
    except KeyringError:
        logger.warning(
            "Failed to delete %s credentials from keychain", exchange.value, exc_info=True
        )
        return False
    logger.info("Deleted %s credentials from keychain", exchange.value)
    return True


def set_exchange_credentials(
    exchange: Exchange, credentials: ExchangeCredentials
) -> bool:
    """Store credentials for ``exchange``, replacing any existing ones.

    Returns:
        ``True`` if stored successfully, ``False`` otherwise.
    """
    if not credentials.api_key.strip() or not credentials.secret.strip():
        logger.warning("Attempted to store empty credentials for %s", exchange.value)
        return False

    clear_exchange_credentials(exchange)
    try:
        keyring.set_password(
            _service_name(), exchange.value, credentials.model_dump_json()
        )
    except KeyringError:
        logger.warning(
            "Failed to store %s credentials in keychain", exchange.value, exc_info=True
        )
        return False
    logger.info("Stored %s credentials in keychain", exchange.value)
    return True


def get_configured_exchanges() -> dict[Exchange, ExchangeCredentials]:
    """Return every exchange that has credentials stored.

    keyring cannot enumerate entries, so each known exchange is looked up.
    """
    result: dict[Exchange, ExchangeCredentials] = {}
    for exchange in Exchange:
        credentials = get_exchange_credentials(exchange)
        if credentials is not None:
            result[exchange] = credentials
    return result
