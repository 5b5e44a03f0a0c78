import numpy as np
import pandas as pd
import pytest

from icestorm14c.statistical_analysis import (
    _clean_factor_list,
    anova_analysis,
    fit_mixed_model,
    kruskal_wallis,
    levene_homogeneity,
    likelihood_ratio_test,
    linear_model,
    mixed_models_by_horizon,
    model_summary_text,
    normality_checks,
    one_way_anova,
    treatment_effect_tests,
    wald_test,
)


@pytest.fixture
def organic(samples):
    return samples[samples["Horizon"] == "organic"]


def test_clean_factor_list_drops_single_level_and_confounded(samples):
    df = samples.assign(Site="A", Block=samples["Treatment"].map({"Control": 1, "Low": 2, "Mid": 3, "High": 4}))
    assert _clean_factor_list(df, ["Treatment", "Site", "Block", "Horizon", "Missing"]) == ["Treatment", "Horizon"]


def test_normality_and_levene_shapes(samples):
    norm = normality_checks(samples, group="Treatment")
    assert sorted(norm["group"]) == ["Control", "High", "Low", "Mid"]
    assert (norm["n"] == 12).all()
    assert norm["p_value"].between(0, 1).all()

    overall = normality_checks(samples)
    assert overall["group"].tolist() == ["ALL"]

    lev = levene_homogeneity(samples, group="Treatment")
    assert lev.loc[0, "test"] == "Levene"
    assert 0 <= lev.loc[0, "p_value"] <= 1


def test_small_groups_return_nan_rows():
    df = pd.DataFrame({"d14c": [1.0, 2.0], "Treatment": ["Control", "Control"]})
    assert np.isnan(normality_checks(df, group="Treatment").loc[0, "p_value"])
    assert np.isnan(levene_homogeneity(df).loc[0, "p_value"])
    assert np.isnan(kruskal_wallis(df).loc[0, "p_value"])


def test_linear_model_uses_control_as_baseline(samples):
    fit = linear_model(samples)
    names = list(fit.params.index)
    assert "C(Treatment)[T.High]" in names
    assert not any("T.Control" in n for n in names)
    assert fit.params["C(Treatment)[T.High]"] > 30
    assert int(fit.nobs) == len(samples)


def test_linear_model_requires_a_factor():
    df = pd.DataFrame({"d14c": [1.0, 2.0, 3.0], "Treatment": ["A"] * 3, "Horizon": ["organic"] * 3})
    with pytest.raises(ValueError):
        linear_model(df)


def test_anova_detects_treatment_effect(samples):
    table = anova_analysis(samples, factors=["Treatment", "Horizon"])
    assert "term" in table.columns
    p = table.set_index("term").loc["C(Treatment)", "PR(>F)"]
    assert p < 0.001


def test_one_way_anova_and_kruskal(organic):
    table = one_way_anova(organic)
    assert table.set_index("term").loc["C(Treatment)", "PR(>F)"] < 0.001
    assert kruskal_wallis(organic).loc[0, "p_value"] < 0.05


def test_one_way_anova_needs_two_groups(organic):
    with pytest.raises(ValueError):
        one_way_anova(organic[organic["Treatment"] == "Control"])


def test_mixed_model_and_wald(organic):
    result = fit_mixed_model(organic)
    assert "C(Treatment)[T.High]" in result.fe_params.index
    assert result.fe_params["C(Treatment)[T.High]"] > 30

    wald = wald_test(result)
    assert wald["df"] == 3
    assert wald["p_value"] < 0.001


def test_wald_test_unknown_factor(organic):
    result = fit_mixed_model(organic)
    with pytest.raises(ValueError):
        wald_test(result, treatment="Nope")


def test_likelihood_ratio_test(organic):
    lrt = likelihood_ratio_test(organic)
    assert lrt["df"] == 3
    assert lrt["stat"] >= 0
    assert lrt["llf_full"] >= lrt["llf_null"]
    assert lrt["p_value"] < 0.01


def test_treatment_effect_tests_table(samples):
    models = mixed_models_by_horizon(samples)
    assert set(models) == {"organic", "mineral"}

    table = treatment_effect_tests(samples, models=models)
    assert len(table) == 4
    assert set(table["test"]) == {"LRT", "Wald"}
    assert table["significant_at_0.05"].all()


def test_model_summary_text_contains_sections(samples):
    text = model_summary_text(linear_model(samples), mixed_models_by_horizon(samples))
    assert "Linear model" in text
    assert "Mixed model (organic)" in text
    assert "Mixed model (mineral)" in text


def test_linear_model_goes_additive_when_a_cell_is_empty(samples):
    missing_cell = samples[~((samples["Treatment"] == "High") & (samples["Horizon"] == "mineral"))]
    fit = linear_model(missing_cell)
    assert "*" not in fit.model.formula
    assert "C(Treatment)[T.High]" in fit.params.index
    assert not any(":" in name for name in fit.params.index)

    full = linear_model(samples)
    assert "*" in full.model.formula


def test_anova_drops_inestimable_interaction(samples):
    missing_cell = samples[~((samples["Treatment"] == "High") & (samples["Horizon"] == "mineral"))]
    terms = anova_analysis(missing_cell, factors=["Treatment", "Horizon"])["term"].tolist()
    assert "C(Treatment):C(Horizon)" not in terms
    assert "C(Treatment)" in terms

    crossed = anova_analysis(samples, factors=["Treatment", "Horizon"])["term"].tolist()
    assert "C(Treatment):C(Horizon)" in crossed
