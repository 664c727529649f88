"""
Process-level wiring: build every service once and hand out references.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .adapters.graph_authenticator import GraphAuthenticator
from .adapters.graph_client import GraphClient
from .adapters.mock_graph_client import MockGraphAuthenticator, MockGraphClient
from .config import AppConfig
from .services.availability import AvailabilityResolver, BusyIntervalFetcher
from .services.booking import BookingService
from .services.notifications import GraphMailNotifier

MOCK_CALENDAR_EMAIL = "contact@example.com"


@dataclass
class Services:
    """Long-lived service objects shared by the CLI and the HTTP API."""
    config: AppConfig
    authenticator: Union[GraphAuthenticator, MockGraphAuthenticator]
    calendar_client: Union[GraphClient, MockGraphClient]
    resolver: AvailabilityResolver
    booking: BookingService
    mock: bool = False

    @property
    def calendar_email(self) -> str:
        return self.resolver.calendar_id


def build_services(
    config: AppConfig,
    mock: bool = False,
    mock_events: Optional[List[Dict[str, Any]]] = None,
    mock_data_file: Optional[Path] = None,
    mock_unavailable: bool = False,
) -> Services:
    """
    Construct the authenticator, Graph client, resolver and booking service.

    With ``mock`` the Graph adapters are replaced by in-process mocks and no
    credentials are needed.
    """
    graph = config.graph
    business_hours = config.business_hours.to_business_hours()

    if mock:
        authenticator = MockGraphAuthenticator()
        calendar_client = MockGraphClient(
            events=mock_events,
            data_file=mock_data_file,
            unavailable=mock_unavailable,
        )
        calendar_email = graph.calendar_email or MOCK_CALENDAR_EMAIL
    else:
        authenticator = GraphAuthenticator(
            client_id=graph.client_id,
            tenant_id=graph.tenant_id,
            client_secret=graph.client_secret,
            scope=graph.scope,
            authority_url=graph.get_authority_url(),
            timeout=graph.timeout_seconds,
        )
        calendar_client = GraphClient(timeout=graph.timeout_seconds)
        calendar_email = graph.calendar_email

    fetcher = BusyIntervalFetcher(token_provider=authenticator, calendar_client=calendar_client)

    resolver = AvailabilityResolver(
        business_hours=business_hours,
        fetcher=fetcher,
        calendar_id=calendar_email,
        max_range_days=config.api.max_range_days,
    )

    notifier = GraphMailNotifier(
        token_provider=authenticator,
        mail_client=calendar_client,
        sender=calendar_email,
        timezone=business_hours.timezone,
    )

    booking = BookingService(
        business_hours=business_hours,
        fetcher=fetcher,
        token_provider=authenticator,
        event_client=calendar_client,
        calendar_id=calendar_email,
        notifier=notifier,
    )

    return Services(
        config=config,
        authenticator=authenticator,
        calendar_client=calendar_client,
        resolver=resolver,
        booking=booking,
        mock=mock,
    )
