import numpy as np
import pandas as pd
import pytest

TREATMENT_EFFECTS = {"Control": 0.0, "Low": 2.0, "Mid": 5.0, "High": 40.0}
HORIZON_BASE = {"organic": 40.0, "mineral": 60.0}
PLOTS_PER_TREATMENT = 2
REPS_PER_PLOT = 3


def make_raw_frame(seed: int = 7) -> pd.DataFrame:
    """Raw CSV-shaped table: two plots per treatment, three cores per plot and horizon."""
    rng = np.random.default_rng(seed)
    rows = []
    plot_no = 0
    for treatment, effect in TREATMENT_EFFECTS.items():
        for p in range(PLOTS_PER_TREATMENT):
            plot_no += 1
            plot_offset = rng.normal(0, 2)
            for horizon, base in HORIZON_BASE.items():
                for r in range(REPS_PER_PLOT):
                    value = base + effect + plot_offset + rng.normal(0, 3)
                    rows.append({
                        "Treatment": treatment,
                        "Horizon": horizon.capitalize(),
                        "Plot": plot_no,
                        "Rep": p * REPS_PER_PLOT + r + 1,
                        "D14C": value,
                        "D14C alt": np.nan,
                    })
    df = pd.DataFrame(rows)
    # every fifth core was only measured by the second lab
    moved = df.index % 5 == 0
    df.loc[moved, "D14C alt"] = df.loc[moved, "D14C"]
    df.loc[moved, "D14C"] = np.nan
    return df


@pytest.fixture
def raw_frame() -> pd.DataFrame:
    return make_raw_frame()


@pytest.fixture
def csv_path(tmp_path, raw_frame):
    path = tmp_path / "roots_14c.csv"
    raw_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def samples(csv_path):
    from icestorm14c.data_loader import load_samples

    return load_samples(csv_path)
