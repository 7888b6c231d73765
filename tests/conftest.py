"""Shared fixtures"""
import pytest

from metrics.models import Target
from metrics.registry import GaugeRegistry


EVO_JSON = (
    '{"id":"6c13f942-01dc-4141-8b0b-328291cc97ca","name":"EVO Zurich Enge",'
    '"max_capacity":90,"current":35,"percentageUsed":38.88888888888889}'
)

EVO_XML = (
    "<gym>"
    "<id>6c13f942-01dc-4141-8b0b-328291cc97ca</id>"
    "<name>EVO Zurich Enge</name>"
    "<max_capacity>90</max_capacity>"
    "<current>35</current>"
    "<percentageUsed>38.88888888888889</percentageUsed>"
    "</gym>"
)


def make_target(**overrides) -> Target:
    """Build the EVO gym target used across the suite"""
    data = {
        "name": "test-evo-enge",
        "uri": "http://evo.test/api/gyms/enge",
        "periodSeconds": 30,
        "metrics": [
            {
                "name": "evo_capacity",
                "valueQuery": ".current",
                "labels": [
                    {"name": "location", "query": ".name"},
                    {"name": "max", "query": ".max_capacity"},
                ],
            },
            {
                "name": "evo_percentage",
                "itemsQuery": ".",
                "valueQuery": ".percentageUsed",
                "labels": [
                    {"name": "location", "query": ".name"},
                    {"name": "max", "query": ".max_capacity"},
                ],
            },
        ],
    }
    data.update(overrides)
    return Target.model_validate(data)


@pytest.fixture
def evo_target() -> Target:
    return make_target()


@pytest.fixture
def gauge_registry() -> GaugeRegistry:
    return GaugeRegistry()
