"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from matchmaking.schema.actors import Attendee, AvailabilitySlot, Company, Consent, NumericField, Sponsor
from matchmaking.storage import ACTORS, InMemoryDocumentStore

CONFIG_PATH = Path(__file__).resolve().parents[1] / "configs" / "config.yaml"

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config_path() -> str:
    """Path to the repository configuration file."""
    return str(CONFIG_PATH)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def make_company() -> Callable[..., Company]:
    """Factory for companies with numeric slots given as keyword arguments."""
    def _make(actor_id: str, name: str = "", numeric: Dict[NumericField, float] = None, **fields: Any) -> Company:
        company = Company(id=actor_id, name=name or actor_id, **fields)
        for numeric_field, value in (numeric or {}).items():
            company.set_numeric(numeric_field, value)
        return company
    return _make


@pytest.fixture
def companies(make_company) -> List[Company]:
    """A small, varied corpus of companies."""
    return [
        make_company(
            "c-studio", "Pixel Forge Studio",
            platforms=["PC", "Console"], markets=["NA", "EU"], categories=["Gaming"],
            needs=["Publishing Services", "Funding"], stage="startup",
            text={"description": "Indie studio building narrative adventure games for PC and console"},
            numeric={NumericField.RATING: 4.5, NumericField.TEAM: 12},
        ),
        make_company(
            "c-publisher", "Northwind Publishing",
            platforms=["PC", "Console", "Mobile"], markets=["NA", "EU", "APAC"], categories=["Gaming"],
            capabilities=["Publishing Services", "Marketing", "Localization"], stage="enterprise",
            text={"description": "Global publisher of narrative adventure and strategy games"},
            numeric={NumericField.RATING: 4.2, NumericField.TEAM: 250},
        ),
        make_company(
            "c-tools", "Engine Tools Co",
            platforms=["PC"], markets=["EU"], categories=["Tools"],
            capabilities=["Rendering Middleware"], needs=["Marketing"], stage="scale",
            text={"description": "Rendering middleware and profiling tools for game engines"},
            numeric={NumericField.RATING: 3.9, NumericField.TEAM: 40},
        ),
        make_company(
            "c-mobile", "Pocket Play",
            platforms=["Mobile"], markets=["APAC"], categories=["Gaming"],
            needs=["Localization"], stage="startup",
            text={"description": "Casual mobile puzzle games for the Asian market"},
            numeric={NumericField.RATING: 4.0, NumericField.TEAM: 8},
        ),
    ]


@pytest.fixture
def sponsor() -> Sponsor:
    return Sponsor(
        id="s-cloud", name="Cloudscale", sponsor_tier="Platinum",
        platforms=["PC", "Mobile"], capabilities=["Cloud Hosting", "Multiplayer Backend"],
        text={"description": "Cloud hosting and multiplayer backend services for game studios"},
    )


@pytest.fixture
def attendee() -> Attendee:
    return Attendee(
        id="a-0000-investor01",
        email="jordan@example.com",
        full_name="Jordan Reyes",
        roles=["Investor"],
        interests=["Publishing", "Funding"],
        bio="Early stage investor in narrative games and publishing",
        availability=[AvailabilitySlot(day="2026-03-02", slots=["09:00", "10:00"])],
        meeting_locations=["Expo Floor"],
        consent=Consent(marketing=False, matchmaking=True, show_public_card=False),
    )


@pytest.fixture
def populated_store(store, companies) -> InMemoryDocumentStore:
    """Store with the company corpus in the actors collection."""
    batch = store.batch()
    for company in companies:
        batch.set(ACTORS, company.id, company.to_dict())
    batch.commit()
    return store


@pytest.fixture
def company_rows() -> List[Dict[str, str]]:
    """Raw upload rows with human-style headers."""
    return [
        {
            "Company Name": "Acme Games",
            "Country": "Finland",
            "City": "Helsinki",
            "Website": "https://acme.example.com",
            "Platforms": "PC, Console",
            "Employees": "45",
            "Founded": "2015",
        },
        {
            "Company Name": "Blue Harbor",
            "Country": "Canada",
            "City": "Montreal",
            "Website": "https://blueharbor.example.com",
            "Platforms": "Mobile",
            "Employees": "1,200",
            "Founded": "2009",
        },
    ]
