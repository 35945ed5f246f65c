from typing import Dict, Optional

import pandas as pd


class DataLoader:
    """Loads the raw marketing table, optionally samples rows and renames columns."""

    def __init__(
        self,
        path: str,
        sample_size: Optional[int] = None,
        sep: str = ",",
        column_mapping: Optional[Dict[str, str]] = None,
        random_state: int = 42,
    ):
        self.path = path
        self.sample_size = sample_size
        self.sep = sep
        self.column_mapping = dict(column_mapping or {})
        self.random_state = random_state

    def load(self) -> pd.DataFrame:
        df = pd.read_csv(self.path, sep=self.sep)
        if self.sample_size and self.sample_size < len(df):
            df = df.sample(self.sample_size, random_state=self.random_state)
        if self.column_mapping:
            df = df.rename(columns=self.column_mapping)
        return df.reset_index(drop=True)
