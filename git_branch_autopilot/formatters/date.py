"""Age formatting utilities."""


def format_age(age_hours: float) -> str:
    """
    Format an age given in hours.

    Args:
        age_hours: Number of hours

    Returns:
        "5h" below two days, "3d" otherwise
    """
    if age_hours < 48:
        return f"{max(0, int(age_hours))}h"
    return f"{int(age_hours // 24)}d"
