from typing import Optional

from google.oauth2.credentials import Credentials
from sqlalchemy.orm import Session

from .. import models
from ..services.calendar_auth import TokenSet


def get_connection(db: Session, account_id: str) -> Optional[models.ProviderConnection]:
    return (
        db.query(models.ProviderConnection)
        .filter(models.ProviderConnection.account_id == account_id)
        .first()
    )


def save_tokens(db: Session, account_id: str, tokens: TokenSet) -> models.ProviderConnection:
    """Upsert the account's token set after the OAuth callback."""
    connection = get_connection(db, account_id)
    if connection is None:
        connection = models.ProviderConnection(account_id=account_id, provider=models.CalendarProvider.GOOGLE)
    connection.access_token = tokens.access_token
    # Google omits the refresh token on re-consent for some accounts; keep the old one.
    if tokens.refresh_token:
        connection.refresh_token = tokens.refresh_token
    connection.expiry_date = tokens.expiry_date
    connection.scope = tokens.scope
    connection.token_type = tokens.token_type
    db.add(connection)
    db.commit()
    db.refresh(connection)
    return connection


def store_refreshed_credentials(
    db: Session,
    connection: models.ProviderConnection,
    credentials: Credentials,
) -> bool:
    """Persist a refreshed access token; returns True when the row changed."""
    if credentials.token == connection.access_token and credentials.expiry == connection.expiry_date:
        return False
    connection.access_token = credentials.token
    connection.expiry_date = credentials.expiry
    db.add(connection)
    db.commit()
    return True


def delete_connection(db: Session, connection: models.ProviderConnection) -> None:
    db.delete(connection)
    db.commit()
