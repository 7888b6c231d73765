"""Turns a response body into gauge samples using a target's metric definitions"""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from logging_config import get_logger

from .document import parse_document
from .errors import ParseError
from .models import ExtractedSample, GenericValue, LabelQuery, MetricDef, Target
from .query import coerce_value, evaluate, stringify_label


logger = get_logger(__name__)


@dataclass
class ExtractionResult:
    """Samples from one body, plus parse diagnostics for the caller to log"""
    samples: List[ExtractedSample] = field(default_factory=list)
    parse_error: Optional[ParseError] = None
    format_mismatch: bool = False


def extract(target: Target, body: Union[bytes, str]) -> ExtractionResult:
    """Extract every metric of a target from one response body.

    The body is parsed once. A body that cannot be parsed yields no samples
    at all. Samples keep metric declaration order, then item order, then
    value order.
    """
    try:
        document = parse_document(body, xml_mode=target.xml_mode)
    except ParseError as e:
        return ExtractionResult(parse_error=e)

    samples: List[ExtractedSample] = []
    for metric in target.metrics:
        samples.extend(_extract_metric(target.name, metric, document.value))

    return ExtractionResult(samples=samples, format_mismatch=document.format_mismatch)


def extract_samples(target: Target, body: Union[bytes, str]) -> List[ExtractedSample]:
    """Shortcut for extract(...).samples"""
    return extract(target, body).samples


def _extract_metric(target_name: str, metric: MetricDef, document: GenericValue) -> List[ExtractedSample]:
    samples = []
    for item in evaluate(document, metric.items_query):
        candidates = evaluate(item, metric.value_query)
        if not candidates:
            continue
        labels = (target_name,) + tuple(_label_value(item, label) for label in metric.labels)
        for candidate in candidates:
            value, numeric = coerce_value(candidate)
            if not numeric:
                # Kept as 0.0 so the label combination still shows up
                logger.debug(
                    "Non-numeric value coerced to 0",
                    target=target_name,
                    metric=metric.name,
                    raw_value=stringify_label(candidate),
                )
            samples.append(ExtractedSample(metric.name, labels, value))
    return samples


def _label_value(item: GenericValue, label: LabelQuery) -> str:
    results = evaluate(item, label.query)
    if not results:
        return ""
    return stringify_label(results[0])
