import os
from datetime import date, datetime

import pytest

os.environ.setdefault("RISK_POLL_INTERVAL_SEC", "0")

from barangay_health.modules.data_gateway import InMemoryGateway
from barangay_health.modules.risk_aggregator import RiskAggregator


TODAY = date(2025, 3, 12)
NOW = datetime(2025, 3, 12, 9, 0, 0)


def seed_rows():
    return {
        'mothers': [
            {'id': 'm1', 'first_name': 'Ana', 'last_name': 'Santos', 'zone': 'Zone 1',
             'address': 'Purok 2, Zone 1, San Isidro', 'contact_number': '09171234567',
             'user_id': 'u1', 'lmp_date': '2024-10-01'},
            {'id': 'm2', 'first_name': 'Bea', 'last_name': 'Cruz', 'zone': 'Zone 2',
             'address': 'Zone 2, Mabini St.', 'contact_number': '09181234567', 'user_id': 'u2'},
            {'id': 'm3', 'first_name': 'Carla', 'last_name': 'Reyes', 'zone': 'Zone 1',
             'address': 'Zone 1', 'user_id': 'u3'},
        ],
        'health_records': [
            {'id': 'r1', 'mother_id': 'm1', 'encounter_date': '2025-03-01',
             'blood_pressure': '110/70', 'temperature': 37.0, 'weight': 60},
            {'id': 'r2', 'mother_id': 'm1', 'encounter_date': '2025-03-10',
             'blood_pressure': '150/95', 'temperature': 37.0, 'weight': 60,
             'notes': 'Refer to RHU for BP check'},
            {'id': 'r3', 'mother_id': 'm2', 'encounter_date': '2025-03-05',
             'blood_pressure': '110/70', 'temperature': 36.8, 'weight': 58},
        ],
    }


@pytest.fixture
def gateway():
    return InMemoryGateway(seed_rows())


@pytest.fixture
def aggregator(gateway):
    return RiskAggregator(gateway, clock=lambda: NOW)
