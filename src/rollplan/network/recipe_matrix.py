"""Dense Matrix representation of Bill of Materials (BOM)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from rollplan.product.core import ProductFamily

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from rollplan.product.core import Product, Recipe


class RecipeMatrixBuilder:
    """Converts product recipes into a dense dependency matrix."""

    def __init__(self, products: list[Product], recipes: list[Recipe]) -> None:
        self.products = products
        self.recipes = recipes
        self.product_id_to_idx: dict[str, int] = {
            p.id: i for i, p in enumerate(products)
        }
        self.n_products = len(products)

    def build_matrix(self) -> NDArray[np.float64]:
        """Builds the Recipe Matrix R.

        Rows (i): Output Product Index (The Finished Good)
        Cols (j): Input Product Index (The Component)
        Value (R_ij): Tonnes of j consumed per tonne of i (pct / 100)
        """
        matrix = np.zeros((self.n_products, self.n_products), dtype=np.float64)

        recipe_map = {r.product_id: r for r in self.recipes}

        for i, product in enumerate(self.products):
            recipe = recipe_map.get(product.id)
            if recipe is None:
                continue
            for comp in recipe.components:
                j = self.product_id_to_idx.get(comp.material_id)
                if j is None:
                    # Component outside the catalog slice; no storage to draw from
                    continue
                matrix[i, j] += comp.pct_value / 100.0

        return matrix

    def family_mask(self, family: ProductFamily) -> NDArray[np.bool_]:
        return np.array([p.family == family for p in self.products], dtype=bool)

    def clinker_fractions(self) -> dict[str, float]:
        """Clinker tonnes consumed per tonne of output, per product."""
        matrix = self.build_matrix()
        fractions = matrix @ self.family_mask(ProductFamily.CLINKER).astype(np.float64)
        return {p.id: float(fractions[i]) for i, p in enumerate(self.products)}
