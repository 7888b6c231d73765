"""Target and metric definition models"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Parsed JSON and normalized XML share this shape
GenericValue = Union[None, bool, int, float, str, List["GenericValue"], Dict[str, "GenericValue"]]

METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")

TARGET_LABEL = "target"


class HttpMethod(str, Enum):
    """Supported request methods"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class LabelQuery(_ConfigModel):
    """A label whose value is pulled out of each item with a jq query"""
    name: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)


class MetricDef(_ConfigModel):
    """One gauge extracted from a target's response"""
    name: str
    items_query: str = Field(default=".", min_length=1)
    value_query: str = Field(..., min_length=1)
    labels: List[LabelQuery] = Field(default_factory=list)
    help: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not METRIC_NAME_RE.match(v):
            raise ValueError(f"'{v}' is not a valid metric name")
        return v

    @field_validator("labels", mode="before")
    @classmethod
    def default_labels(cls, v):
        return v or []

    @property
    def label_names(self) -> Tuple[str, ...]:
        """Gauge label schema: the target label first, then declared labels in order"""
        return (TARGET_LABEL,) + tuple(label.name for label in self.labels)

    @property
    def help_text(self) -> str:
        return self.help or f"Metric {self.name}"


class Target(_ConfigModel):
    """An HTTP endpoint polled on a fixed interval"""
    name: str = Field(..., min_length=1)
    uri: str = Field(..., min_length=1)
    method: HttpMethod = HttpMethod.GET
    use_bearer_token_from: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    form_params: Dict[str, str] = Field(default_factory=dict)
    xml_mode: bool = False
    period_seconds: int = Field(..., gt=0)
    metrics: List[MetricDef] = Field(..., min_length=1)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("headers", "form_params", mode="before")
    @classmethod
    def default_mapping(cls, v):
        return v or {}

    @model_validator(mode="after")
    def check_unique_metric_names(self) -> "Target":
        seen = set()
        for metric in self.metrics:
            if metric.name in seen:
                raise ValueError(f"duplicate metric '{metric.name}' in target '{self.name}'")
            seen.add(metric.name)
        return self


@dataclass(frozen=True)
class ExtractedSample:
    """A single observation produced from one response body"""
    metric_name: str
    label_values: Tuple[str, ...]
    value: float
