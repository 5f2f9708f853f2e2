"""配方构建策略注册

get_recipe(name) 按配方名返回对应策略实例，未注册的配方抛 FormulaNotFoundError。
"""

from __future__ import annotations

from tapbuild.core.exceptions import FormulaNotFoundError
from tapbuild.recipes.base import BaseRecipe
from tapbuild.recipes.julia import JuliaRecipe
from tapbuild.recipes.llvm import LlvmRecipe

_RECIPES: dict[str, type[BaseRecipe]] = {
    JuliaRecipe.formula_name: JuliaRecipe,
    LlvmRecipe.formula_name: LlvmRecipe,
}


def get_recipe(name: str) -> BaseRecipe:
    """获取配方构建策略"""
    cls = _RECIPES.get(name)
    if cls is None:
        raise FormulaNotFoundError(
            f"配方 {name} 没有对应的构建策略。已注册: {sorted(_RECIPES)}"
        )
    return cls()


__all__ = ["BaseRecipe", "JuliaRecipe", "LlvmRecipe", "get_recipe"]
