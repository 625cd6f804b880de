"""
Market forecast calculation.

A least-squares trend line over a monthly price series, and an
equal-weight combination of that trend with the valuation provider's own
appreciation forecast.
"""
import logging
from typing import Any, Dict, List, Optional

from insight_engine.core.schemas import ForecastPoint, MarketForecast

logger = logging.getLogger(__name__)


CALCULATED_CONFIDENCE = 65
PROVIDER_CONFIDENCE = 75

FORECAST_WEIGHTS = {
    "valuation": 0.5,
    "calculated": 0.5,
}


def calculate_forecast(history: List[Dict[str, Any]], months: int) -> Dict[str, Any]:
    """
    Extrapolate a linear trend over a price series.

    Args:
        history: Points with a "price" key, oldest first (at least two)
        months: Number of months to project

    Returns:
        Dict with forecast (ForecastPoints relative to the last observed
        price), confidence, method and factors

    Raises:
        ValueError: If fewer than two points are given
    """
    prices = [float(point["price"]) for point in history]
    n = len(prices)
    if n < 2:
        raise ValueError("At least two historical points are needed for a trend")

    sum_x = sum(range(n))
    sum_y = sum(prices)
    sum_xy = sum(i * p for i, p in enumerate(prices))
    sum_x2 = sum(i * i for i in range(n))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    last = prices[-1]

    forecast = []
    for i in range(months):
        predicted = intercept + slope * (n + i)
        change = (predicted - last) / last * 100 if last else 0.0
        forecast.append(
            ForecastPoint(
                month=i + 1,
                predicted_price=round(predicted),
                change_percent=round(change, 2),
            )
        )

    return {
        "forecast": forecast,
        "confidence": CALCULATED_CONFIDENCE,
        "method": "Linear Regression",
        "factors": ["Historical price trends", "Seasonal patterns"],
    }


def combine_forecasts(
    region: str,
    forecasts: Dict[str, Dict[str, Any]],
    months: int,
) -> MarketForecast:
    """
    Combine the available forecasts month by month.

    Args:
        region: Region the forecast is for
        forecasts: Any of "valuation" ({appreciation, confidence, factors})
            and "calculated" (output of calculate_forecast)
        months: Number of months

    Returns:
        MarketForecast with one prediction per month; confidence is the
        mean of the inputs' confidences
    """
    valuation = forecasts.get("valuation")
    calculated = forecasts.get("calculated")

    predictions = []
    for i in range(months):
        weighted_sum = 0.0
        total_weight = 0.0

        if valuation is not None:
            weighted_sum += valuation["appreciation"] * FORECAST_WEIGHTS["valuation"]
            total_weight += FORECAST_WEIGHTS["valuation"]

        if calculated is not None:
            point = calculated["forecast"][i]
            weighted_sum += point.change_percent * FORECAST_WEIGHTS["calculated"]
            total_weight += FORECAST_WEIGHTS["calculated"]

        predicted_price: Optional[int] = None
        if calculated is not None and valuation is None:
            predicted_price = calculated["forecast"][i].predicted_price

        predictions.append(
            ForecastPoint(
                month=i + 1,
                change_percent=round(weighted_sum / total_weight, 2) if total_weight else 0.0,
                predicted_price=predicted_price,
            )
        )

    confidence = 0
    if forecasts:
        confidence = round(sum(f["confidence"] for f in forecasts.values()) / len(forecasts))

    factors: List[str] = []
    for f in forecasts.values():
        for factor in f.get("factors", []):
            if factor not in factors:
                factors.append(factor)

    return MarketForecast(
        region=region,
        months=months,
        sources=list(forecasts),
        predictions=predictions,
        confidence=confidence,
        factors=factors,
    )
