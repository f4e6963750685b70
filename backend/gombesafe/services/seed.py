"""Demo data: Gombe LGA security areas and sample incidents."""

import logging

from gombesafe.services.store.incident_store import IncidentStore

logger = logging.getLogger(__name__)

GOMBE_SECURITY_AREAS = [
    {
        "name": "Bolari",
        "description": "Central business district with markets and government buildings. Moderate security presence.",
        "riskLevel": "medium",
        "latitude": 10.2937,
        "longitude": 11.1694,
        "radiusMeters": 1500,
    },
    {
        "name": "Jekadafari",
        "description": "Residential and commercial area with markets and schools. Standard urban security considerations.",
        "riskLevel": "medium",
        "latitude": 10.2900,
        "longitude": 11.1800,
        "radiusMeters": 1200,
    },
    {
        "name": "Pantami",
        "description": "Home to Federal University and student accommodations. Increased police patrols at night.",
        "riskLevel": "low",
        "latitude": 10.2700,
        "longitude": 11.1700,
        "radiusMeters": 1800,
    },
    {
        "name": "Herwagana",
        "description": "Residential neighborhood with local markets. Generally peaceful with community watch.",
        "riskLevel": "low",
        "latitude": 10.3000,
        "longitude": 11.1900,
        "radiusMeters": 1000,
    },
    {
        "name": "Nasarawo",
        "description": "Residential area with mixed housing. Standard security presence.",
        "riskLevel": "low",
        "latitude": 10.2800,
        "longitude": 11.1750,
        "radiusMeters": 1000,
    },
    {
        "name": "Tudun Wada",
        "description": "Densely populated residential area. Exercise caution at night.",
        "riskLevel": "medium",
        "latitude": 10.2850,
        "longitude": 11.1850,
        "radiusMeters": 1500,
    },
    {
        "name": "Arawa",
        "description": "Residential area with local markets. Generally peaceful.",
        "riskLevel": "low",
        "latitude": 10.2950,
        "longitude": 11.1650,
        "radiusMeters": 1200,
    },
    {
        "name": "GRA",
        "description": "Government Reserved Area with official residences and offices. High security presence.",
        "riskLevel": "low",
        "latitude": 10.3000,
        "longitude": 11.2000,
        "radiusMeters": 2000,
    },
    {
        "name": "Tudun Hatsi",
        "description": "Residential area with local markets. Community policing in effect.",
        "riskLevel": "low",
        "latitude": 10.2750,
        "longitude": 11.1800,
        "radiusMeters": 1000,
    },
    {
        "name": "Sabon Layi",
        "description": "Mixed residential and commercial area. Standard security considerations.",
        "riskLevel": "medium",
        "latitude": 10.2800,
        "longitude": 11.1900,
        "radiusMeters": 1200,
    },
]

SAMPLE_INCIDENTS = [
    {
        "type": "theft",
        "location": "Pantami Market",
        "description": "Petty theft reported at market. Police investigation ongoing. No injuries reported.",
        "latitude": 10.2700,
        "longitude": 11.1700,
        "severity": "low",
        "status": "resolved",
    },
    {
        "type": "traffic_incident",
        "location": "Gombe-Bauchi Road",
        "description": "Minor traffic accident near Dukku junction. No casualties. Traffic flow restored.",
        "latitude": 10.8167,
        "longitude": 10.7667,
        "severity": "low",
        "status": "resolved",
    },
    {
        "type": "public_disturbance",
        "location": "Jekadafari Roundabout",
        "description": "Peaceful protest by market traders. Situation under control with police presence.",
        "latitude": 10.2900,
        "longitude": 11.1800,
        "severity": "low",
        "status": "resolved",
    },
    {
        "type": "suspicious_activity",
        "location": "Federal Low-Cost Estate",
        "description": "Report of suspicious individuals. Security personnel conducted search, no threat found.",
        "latitude": 10.3000,
        "longitude": 11.2000,
        "severity": "low",
        "status": "resolved",
    },
    {
        "type": "community_alert",
        "location": "Kwami LGA",
        "description": "Community security meeting held to discuss neighborhood watch initiatives.",
        "latitude": 10.4500,
        "longitude": 11.2000,
        "severity": "low",
        "status": "active",
    },
]


def seed_demo_data(store: IncidentStore) -> dict:
    """
    Load the demo areas and incidents through the normal write path.

    Incident keys are fixed, so seeding twice does not duplicate incidents.
    """
    areas = 0
    if store.area_count() == 0:
        for area in GOMBE_SECURITY_AREAS:
            store.provision_area(area)
            areas += 1

    incidents = 0
    for n, report in enumerate(SAMPLE_INCIDENTS, start=1):
        result = store.submit(report, f"seed-incident-{n}")
        if result.created:
            incidents += 1

    logger.info(f"Seeded {areas} security areas and {incidents} incidents")
    return {"areas": areas, "incidents": incidents}
