"""Usage forecasting for quota-watch."""

from quota_watch.forecast.forecaster import (
    calculate_hourly_rate,
    format_time_to_limit,
    predict_time_to_limit,
)

__all__ = [
    "predict_time_to_limit",
    "calculate_hourly_rate",
    "format_time_to_limit",
]
