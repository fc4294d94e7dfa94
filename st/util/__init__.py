from .misc import now_iso, to_api_iso, parse_api_iso, format_duration, format_trend_label, normalize_color, is_hex_color, digits_only

__all__ = ["now_iso", "to_api_iso", "parse_api_iso", "format_duration", "format_trend_label", "normalize_color", "is_hex_color", "digits_only"]
