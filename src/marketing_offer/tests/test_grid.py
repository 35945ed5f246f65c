import pytest

from marketing_offer.errors import ConfigurationError
from marketing_offer.grid import GridAxis, HyperparameterGrid, config_id
from marketing_offer.model_families import FAMILY_ORDER, build_family_registry


def test_linear_axis_is_evenly_spaced():
    axis = GridAxis("mixture", 0.0, 1.0, 5)
    assert axis.values() == pytest.approx((0.0, 0.25, 0.5, 0.75, 1.0))


def test_log_axis_spans_decades():
    axis = GridAxis("penalty", 1e-3, 1.0, 4, log=True)
    assert axis.values() == pytest.approx((1e-3, 1e-2, 1e-1, 1.0))


def test_integer_axis_rounds_and_deduplicates():
    axis = GridAxis("neighbors", 1, 3, 5, integer=True)
    assert axis.values() == (1, 2, 3)


@pytest.mark.parametrize(
    "axis",
    [
        GridAxis("a", 5, 1, 3),
        GridAxis("a", 0, 1, 0),
        GridAxis("a", 0, 1, 3, log=True),
    ],
)
def test_invalid_axes_raise(axis):
    with pytest.raises(ConfigurationError):
        axis.values()


def test_grid_is_cartesian_product_in_axis_order():
    grid = HyperparameterGrid.from_config(
        {
            "trees": {"min": 100, "max": 200, "levels": 2, "integer": True},
            "min_n": {"min": 2, "max": 4, "levels": 2, "integer": True},
        }
    )
    assert grid.configurations() == [
        {"trees": 100, "min_n": 2},
        {"trees": 100, "min_n": 4},
        {"trees": 200, "min_n": 2},
        {"trees": 200, "min_n": 4},
    ]
    assert len(grid) == 4


def test_empty_grid_has_single_default_configuration():
    assert HyperparameterGrid().configurations() == [{}]
    assert config_id({}) == "default"


def test_axis_config_missing_bounds_raises():
    with pytest.raises(ConfigurationError):
        HyperparameterGrid.from_config({"neighbors": {"levels": 3}})


def test_config_id_is_order_independent():
    assert config_id({"b": 2, "a": 0.5}) == config_id({"a": 0.5, "b": 2}) == "a=0.5,b=2"


def test_registry_has_six_families_with_four_tunable():
    registry = build_family_registry()
    assert tuple(registry) == FAMILY_ORDER
    tunable = [name for name, fam in registry.items() if fam.tunable]
    assert tunable == ["knn", "elastic_net", "decision_tree", "random_forest"]
    assert registry["random_forest"].supports_importance
    assert not registry["knn"].supports_importance


def test_registry_honours_enabled_flag_and_rejects_unknown():
    registry = build_family_registry({"boosted_trees": {"enabled": False}})
    assert "boosted_trees" not in registry
    with pytest.raises(ConfigurationError):
        build_family_registry({"svm": {}})


def test_random_forest_mtry_is_clipped_to_feature_count():
    family = build_family_registry()["random_forest"]
    model = family.build({"mtry": 50, "trees": 10, "min_n": 2}, n_samples=100, n_features=7, seed=0)
    assert model.max_features == 7
    assert model.n_estimators == 10


@pytest.mark.parametrize(
    "family, grid",
    [
        ("elastic_net", {"penalty": {"min": 0.0, "max": 0.1, "levels": 2}, "mixture": {"min": 0.0, "max": 1.0, "levels": 2}}),
        ("elastic_net", {"penalty": {"min": 0.01, "max": 0.1, "levels": 2}, "mixture": {"min": 0.0, "max": 2.0, "levels": 2}}),
        ("knn", {"neighbors": {"min": 0, "max": 5, "levels": 3, "integer": True}}),
        ("random_forest", {"mtry": {"min": 2, "max": 4, "levels": 2}, "trees": {"min": 0, "max": 10, "levels": 2}, "min_n": {"min": 1, "max": 2, "levels": 2}}),
        ("decision_tree", {"alpha": {"min": 0.001, "max": 0.01, "levels": 2}}),
    ],
)
def test_registry_rejects_grid_values_the_builder_cannot_use(family, grid):
    with pytest.raises(ConfigurationError):
        build_family_registry({family: {"grid": grid}})
