import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from marketing_offer.cleaner import DataCleaner
from marketing_offer.feature_engineer import FeatureEngineer

EDUCATION = ["Graduation", "PhD", "Master", "Basic", "2n Cycle"]
MARITAL = ["Married", "Together", "Single", "Divorced", "Widow"]


def make_customers(n: int = 200, pos_rate: float = 0.15, seed: int = 0) -> pd.DataFrame:
    """Synthetic customer records in the renamed raw schema."""
    rng = np.random.RandomState(seed)
    n_pos = int(round(n * pos_rate))
    accepted = np.array([1] * n_pos + [0] * (n - n_pos))
    rng.shuffle(accepted)

    income = rng.normal(50000, 15000, n).clip(5000, 120000) + accepted * 15000
    enrolled = pd.Timestamp("2012-07-30") + pd.to_timedelta(rng.randint(0, 700, n), unit="D")

    df = pd.DataFrame(
        {
            "id": np.arange(n),
            "birth_year": rng.randint(1940, 2000, n),
            "education": rng.choice(EDUCATION, n),
            "marital_status": rng.choice(MARITAL, n),
            "income": income.round(0),
            "kids_home": rng.randint(0, 3, n),
            "teens_home": rng.randint(0, 3, n),
            "enrolled_on": enrolled.strftime("%d-%m-%Y"),
            "recency": rng.randint(0, 100, n) - accepted * 20,
            "spend_wine": rng.randint(0, 1000, n) + accepted * 300,
            "spend_meat": rng.randint(0, 800, n),
            "purchases_web": rng.randint(0, 12, n),
            "purchases_store": rng.randint(0, 14, n),
            "accepted_cmp1": (rng.rand(n) < 0.07 + 0.2 * accepted).astype(int),
            "accepted_cmp2": (rng.rand(n) < 0.02).astype(int),
            "complain": (rng.rand(n) < 0.01).astype(int),
            "cost_contact": 3,
            "revenue": 11,
            "accepted": accepted,
        }
    )
    return df


@pytest.fixture
def raw_df() -> pd.DataFrame:
    return make_customers()


@pytest.fixture
def model_df(raw_df) -> pd.DataFrame:
    """Cleaned modeling frame (no outlier removal, so the row count is stable)."""
    engineered = FeatureEngineer(date_format="%d-%m-%Y").transform(raw_df)
    return DataCleaner().clean(engineered, remove_outliers=False)
