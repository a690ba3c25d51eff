"""Installation suitability rules for forecast records."""

from jobsite_forecast.models.weather import WeatherRecord

MIN_TEMPERATURE_F = 40
MAX_TEMPERATURE_F = 95
MAX_PRECIPITATION_PCT = 30  # exclusive
MAX_WIND_SPEED_MPH = 20  # exclusive

SUITABLE_MESSAGE = "Weather conditions are suitable for installation"
UNSUITABLE_MESSAGE = "Weather conditions may not be suitable for installation"


def is_suitable(record: WeatherRecord) -> bool:
    """Check whether a forecast allows outdoor installation work."""
    return (
        MIN_TEMPERATURE_F <= record.temperature <= MAX_TEMPERATURE_F
        and record.precipitation < MAX_PRECIPITATION_PCT
        and record.wind_speed < MAX_WIND_SPEED_MPH
    )


def suitability_message(record: WeatherRecord) -> str:
    return SUITABLE_MESSAGE if is_suitable(record) else UNSUITABLE_MESSAGE
