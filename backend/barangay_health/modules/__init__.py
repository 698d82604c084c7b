"""
Barangay Health Modules Package
Risk classification, roster aggregation and notification feeds
"""

from .data_gateway import (
    DataGateway,
    InMemoryGateway,
    JsonFileGateway,
    LocalBlobStorage,
    GatewayError,
    RecordNotFound,
)
from .risk_engine import (
    classify_risk,
    parse_blood_pressure,
    RISK_STABLE,
    RISK_HIGH_BP,
    RISK_FEVER,
    RISK_LOW_WEIGHT,
    RISK_CHRONIC,
)
from .risk_aggregator import RiskAggregator, latest_record
from .notification_compiler import compile_feed, compile_feed_for_user
from .health_records import save_health_record, delete_health_record, compute_bmi
from .risk_poller import RiskPoller


__all__ = [
    'DataGateway',
    'InMemoryGateway',
    'JsonFileGateway',
    'LocalBlobStorage',
    'GatewayError',
    'RecordNotFound',
    'classify_risk',
    'parse_blood_pressure',
    'RISK_STABLE',
    'RISK_HIGH_BP',
    'RISK_FEVER',
    'RISK_LOW_WEIGHT',
    'RISK_CHRONIC',
    'RiskAggregator',
    'latest_record',
    'compile_feed',
    'compile_feed_for_user',
    'save_health_record',
    'delete_health_record',
    'compute_bmi',
    'RiskPoller',
]
