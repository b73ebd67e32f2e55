import pytest

from rollplan.network.core import (
    CampaignBlock,
    CampaignStatus,
    Equipment,
    EquipmentType,
    Facility,
    FacilityType,
    Storage,
)
from rollplan.product.core import (
    Product,
    ProductCategory,
    ProductFamily,
    Recipe,
    RecipeComponent,
)


def test_facility_creation():
    facility = Facility(
        id="PLT-MIA",
        name="Miami Plant",
        type=FacilityType.CEMENT_PLANT,
        code="MIA",
        sub_region_id="SR-FL",
    )
    assert facility.id == "PLT-MIA"
    assert facility.type == FacilityType.CEMENT_PLANT
    assert facility.runs_stage(EquipmentType.KILN)
    assert facility.runs_stage(EquipmentType.FINISH_MILL)
    assert not facility.runs_stage(EquipmentType.RAW_MILL)


def test_facility_stages_by_type():
    grinding = Facility("GRD", "Grinding", FacilityType.GRINDING)
    terminal = Facility("TRM", "Terminal", FacilityType.TERMINAL)

    assert grinding.runs_stage(EquipmentType.FINISH_MILL)
    assert not grinding.runs_stage(EquipmentType.KILN)
    assert not terminal.runs_stage(EquipmentType.FINISH_MILL)


def test_empty_ids_rejected():
    with pytest.raises(ValueError):
        Facility("", "Nameless", FacilityType.TERMINAL)
    with pytest.raises(ValueError):
        Product("", "Nameless", ProductCategory.RAW_MATERIAL)
    with pytest.raises(ValueError):
        Storage("", "PLT")


def test_names_default_to_ids():
    assert Equipment("K1", "PLT", EquipmentType.KILN).name == "K1"
    assert Storage("SILO-1", "PLT").name == "SILO-1"


def test_storage_product_is_first_allowed():
    silo = Storage("SILO", "PLT", allowed_product_ids=["CEM-IL", "CEM-I-II"])
    assert silo.product_id == "CEM-IL"
    assert Storage("EMPTY", "PLT").product_id is None


def test_product_family():
    clinker = Product("CLK", "Clinker", ProductCategory.INTERMEDIATE_PRODUCT)
    slag = Product("SLG", "Slag Cement", ProductCategory.RAW_MATERIAL, family_code="slag")
    coal = Product("COAL", "Coal", ProductCategory.FUEL, family_code="XYZ")

    assert clinker.family == ProductFamily.CLINKER
    # Family code wins over category
    assert slag.family == ProductFamily.CEMENT
    # Unknown codes fall back to the category
    assert coal.family == ProductFamily.FUEL
    assert not clinker.is_finished


def test_recipe_discrepancy():
    recipe = Recipe(
        product_id="CEM-IL",
        components=[
            RecipeComponent("CLK", 85),
            RecipeComponent("LIME", 10),
            RecipeComponent("GYP", 4),
        ],
    )
    assert recipe.version == 1
    assert recipe.total_pct == pytest.approx(99)
    assert recipe.pct_discrepancy == pytest.approx(-1)


def test_recipe_total_ignores_malformed_percentages():
    recipe = Recipe(
        product_id="CEM-IL",
        components=[
            RecipeComponent("CLK", "85"),
            RecipeComponent("LIME", None),
            RecipeComponent("GYP", float("inf")),
        ],
    )
    assert [c.pct_value for c in recipe.components] == [85.0, 0.0, 0.0]
    assert recipe.total_pct == pytest.approx(85)
    assert recipe.pct_discrepancy == pytest.approx(-15)


def test_campaign_status_resolution():
    explicit = CampaignBlock("2026-01-01", "PLT", "K1", status=CampaignStatus.MAINTENANCE)
    producing = CampaignBlock("2026-01-01", "PLT", "K1", product_id="CLK", rate_stn=5000)
    no_rate = CampaignBlock("2026-01-01", "PLT", "K1", product_id="CLK", rate_stn="bad")
    no_product = CampaignBlock("2026-01-01", "PLT", "K1", rate_stn=5000)

    assert explicit.resolved_status == CampaignStatus.MAINTENANCE
    assert producing.resolved_status == CampaignStatus.PRODUCE
    assert no_rate.resolved_status == CampaignStatus.IDLE
    assert no_product.resolved_status == CampaignStatus.IDLE
