"""CloudWatch metric references."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Metric:
    """A reference to a CloudWatch metric.

    Example:
        >>> m = Metric("AWS/AutoScaling", "GroupDesiredCapacity",
        ...            {"AutoScalingGroupName": "render-fleet"})
        >>> m.to_metric_stat()["Metric"]["MetricName"]
        'GroupDesiredCapacity'
    """

    namespace: str
    metric_name: str
    dimensions: dict[str, str] = field(default_factory=dict)
    label: str | None = None
    statistic: str = "Average"
    period: int = 300

    def to_metric_stat(self) -> dict[str, Any]:
        """Shape expected by ``cloudwatch.get_metric_data`` queries."""
        return {
            "Metric": {
                "Namespace": self.namespace,
                "MetricName": self.metric_name,
                "Dimensions": [{"Name": k, "Value": v} for k, v in self.dimensions.items()],
            },
            "Period": self.period,
            "Stat": self.statistic,
        }

    def to_alarm_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``cloudwatch.put_metric_alarm``."""
        return {
            "Namespace": self.namespace,
            "MetricName": self.metric_name,
            "Dimensions": [{"Name": k, "Value": v} for k, v in self.dimensions.items()],
            "Statistic": self.statistic,
            "Period": self.period,
        }
