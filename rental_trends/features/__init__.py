"""Price series decomposition into trend, periodic and remainder."""
from .decomposition import (
    TrendDecomposer,
    add_periodic_component,
    date_ordinal,
    decompose,
    decompose_trend,
    weekday_label,
)
