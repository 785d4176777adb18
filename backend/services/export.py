"""
Tabular export of listings (CSV) via pandas.
"""
from typing import Any, Dict, List, Optional

import pandas as pd

EXPORT_COLUMNS = [
    "id", "title", "property_type", "bedrooms", "bathrooms", "square_feet", "price",
    "location", "status", "compliance_score", "seo_score", "features", "hashtags",
    "description", "created_at", "updated_at",
]

def _join(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return value

def listings_to_frame(listings: List[Dict[str, Any]], brand: Optional[str] = None) -> pd.DataFrame:
    """One row per listing with a fixed column order; list columns are joined with '; '."""
    df = pd.DataFrame(listings, columns=EXPORT_COLUMNS)
    for col in ("features", "hashtags"):
        df[col] = df[col].apply(_join)
    if brand:
        df.insert(0, "brand", brand)
    return df

def frame_to_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False)
