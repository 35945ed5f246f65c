import numpy as np
import pandas as pd

# Right-open upper bounds on birth year, checked in order.
GENERATION_BOUNDS = (
    (1901, "Lost Generation"),
    (1928, "Greatest Generation"),
    (1946, "Silent Generation"),
    (1965, "Baby Boomer"),
    (1981, "Generation X"),
    (1997, "Millennial"),
)

CAMPAIGN_FLAG_PREFIX = "accepted_cmp"


def assign_generation(years: pd.Series, fallback: str = "Generation Z") -> pd.Series:
    """Map birth years to generation names; years past the last bound get ``fallback``.

    Missing years stay missing.
    """
    years = pd.to_numeric(years, errors="coerce")
    bins = [-np.inf] + [bound for bound, _ in GENERATION_BOUNDS] + [np.inf]
    labels = [name for _, name in GENERATION_BOUNDS] + [fallback]
    out = pd.cut(years, bins=bins, labels=labels, right=False)
    return out.astype(object).where(years.notna(), np.nan)


def reference_date(dates: pd.Series) -> pd.Timestamp:
    """One day after the latest enrollment date observed."""
    latest = pd.to_datetime(dates).max()
    if pd.isna(latest):
        raise ValueError("Cannot derive a reference date from an empty date column")
    return latest + pd.Timedelta(days=1)


class FeatureEngineer:
    """Derives generation, tenure and prior-acceptance features from raw customer records."""

    def __init__(
        self,
        generation_fallback: str = "Generation Z",
        date_format: str | None = None,
        birth_col: str = "birth_year",
        enrolled_col: str = "enrolled_on",
    ):
        self.generation_fallback = generation_fallback
        self.date_format = date_format
        self.birth_col = birth_col
        self.enrolled_col = enrolled_col

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()

        if self.birth_col in out.columns:
            out["generation"] = assign_generation(out[self.birth_col], self.generation_fallback)

        if self.enrolled_col in out.columns:
            enrolled = pd.to_datetime(out[self.enrolled_col], format=self.date_format)
            ref = reference_date(enrolled)
            out["tenure_days"] = (ref - enrolled).dt.days

        flag_cols = [c for c in out.columns if c.startswith(CAMPAIGN_FLAG_PREFIX)]
        if flag_cols:
            out["prior_acceptances"] = out[flag_cols].fillna(0).astype(int).sum(axis=1)

        return out
